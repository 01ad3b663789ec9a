"""
Converger service

The top-level entry-points into this module are :func:`execute_convergence`,
:func:`execute_deletion` and :obj:`Converger`.
"""

# # Note [Convergence passes]
#
# A pass looks at one endpoint and does as much as it can right now to bring
# it to its desired state: find (or create) the endpoint, fix its subnets and
# security groups, then publish its DNS record.  A pass never sleeps and
# never retries; it ends with a ReconcileOutcome saying how far it got.
#
# The Converger decides when the next pass happens, based on the outcome:
#
# - Converged/Deleted: nothing to do until the next periodic sweep or
#   trigger.
# - NotReady: the endpoint is still coming up; look again after a fixed,
#   short interval.
# - Degraded: something failed that may go away; look again after a backoff
#   that doubles per endpoint and is capped by a token bucket shared by all
#   endpoints.
# - Failed: nothing will change until the input does; don't look again until
#   triggered.
#
# Passes for one endpoint never overlap.  A trigger that arrives while a
# pass is running is remembered, and another pass runs right after.  A pass
# that times out still holds its endpoint until its effects stop, and every
# intent it performs after the timeout is refused.

from effect import Effect, sync_performer
from effect.do import do, do_return

from sumtypes import match

from twisted.application.internet import TimerService
from twisted.application.service import MultiService
from twisted.internet.defer import Deferred, gatherResults, succeed
from twisted.python.failure import Failure

from txeffect import perform

from vpce.convergence.dns import generate_record, record_name
from vpce.convergence.effecting import steps_to_effect
from vpce.convergence.errors import present_reasons, structure_reason
from vpce.convergence.gathering import (
    find_endpoint_by_id,
    find_endpoint_by_tags,
    find_or_create_endpoint,
    get_cluster_context,
    get_private_subnet_ids,
    get_published_record)
from vpce.convergence.model import (
    ErrorReason,
    ReconcileOutcome,
    StepResult)
from vpce.convergence.planning import plan_attachments, plan_record
from vpce.convergence.steps import DeleteEndpoint, DeleteRecord
from vpce.errors import (
    AmbiguousEndpointError,
    InvalidInputError,
    NoSelectionError,
    NotReadyError)
from vpce.log.intents import msg, msg_with_time, with_log
from vpce.models.intents import (
    GetDesiredSpec,
    ListEndpointKeys,
    UpdateEndpointStatus)
from vpce.models.interface import NoSuchEndpointSpecError
from vpce.util.deferredutils import timeout_deferred
from vpce.util.tags import generate_endpoint_name


_TERMINAL_ERRORS = (InvalidInputError, AmbiguousEndpointError,
                    NoSelectionError)


def outcome_from_error(endpoint_id, error):
    """
    Turn an exception that ended a pass into a :obj:`ReconcileOutcome`.

    Errors in the input are :obj:`ReconcileOutcome.Failed`, an endpoint that
    isn't available yet is :obj:`ReconcileOutcome.NotReady`, and anything
    else, such as AWS throttling or refusing a change, is
    :obj:`ReconcileOutcome.Degraded`.
    """
    reasons = [ErrorReason.Exception(error)]
    if isinstance(error, _TERMINAL_ERRORS):
        return ReconcileOutcome.Failed(endpoint_id, reasons)
    if isinstance(error, NotReadyError):
        return ReconcileOutcome.NotReady(endpoint_id, reasons)
    return ReconcileOutcome.Degraded(endpoint_id, reasons)


@do
def _execute_steps(steps):
    """
    Given a sequence of steps, executes them, logs the result, and returns
    the status that stopped them (or SUCCESS) with a list of reasons.

    :return: a tuple of (:class:`StepResult` constant, list of reasons)
    """
    if len(steps) > 0:
        results = yield steps_to_effect(steps)
        worst_status, reasons = results[-1]
        results_to_log = [
            {'step': step,
             'result': result,
             'reasons': [structure_reason(r) for r in reasons]}
            for step, (result, reasons) in zip(steps, results)
        ]
    else:
        worst_status = StepResult.SUCCESS
        results_to_log = reasons = []

    yield msg('execute-convergence-results',
              results=results_to_log,
              worst_status=worst_status.name)
    yield do_return((worst_status, reasons))


def _outcome_from_steps(endpoint_id, status, reasons):
    if status is StepResult.FAILURE:
        return ReconcileOutcome.Failed(endpoint_id, reasons)
    return ReconcileOutcome.Degraded(endpoint_id, reasons)


@do
def _converge_endpoint(cluster, spec, endpoint):
    """
    Synchronize the attachments of a found endpoint and publish its DNS
    record.
    """
    private_subnet_ids = yield get_private_subnet_ids(cluster)
    steps = plan_attachments(endpoint, private_subnet_ids,
                             spec.security_group_id)
    yield msg('execute-convergence', steps=steps, endpoint_id=endpoint.id,
              endpoint_state=endpoint.state.name)
    status, reasons = yield _execute_steps(steps)
    if status is not StepResult.SUCCESS:
        yield do_return(_outcome_from_steps(endpoint.id, status, reasons))

    record = yield generate_record(endpoint.id)
    name = record_name(spec.subdomain_name, cluster.domain_name)
    published = yield get_published_record(cluster, name)
    status, reasons = yield _execute_steps(
        plan_record(cluster.hosted_zone_id, name, record, published))
    if status is not StepResult.SUCCESS:
        yield do_return(_outcome_from_steps(endpoint.id, status, reasons))
    yield do_return(ReconcileOutcome.Converged(endpoint.id, record))


@do
def execute_convergence(cluster, spec):
    """
    Run one convergence pass: locate or create the endpoint, synchronize its
    subnets and security groups, and publish its DNS record.

    :param ClusterContext cluster: the cluster the endpoint belongs to
    :param DesiredSpec spec: what the endpoint should look like

    :return: Effect of :obj:`ReconcileOutcome`
    """
    yield msg('begin-convergence')
    endpoint_id = spec.endpoint_id
    try:
        endpoint = yield find_or_create_endpoint(cluster, spec)
        endpoint_id = endpoint.id
        outcome = yield _converge_endpoint(cluster, spec, endpoint)
    except Exception as e:
        outcome = outcome_from_error(endpoint_id, e)
    yield do_return(outcome)


@do
def _delete_endpoint(cluster, spec):
    endpoint = yield find_endpoint_by_id(spec.endpoint_id)
    if endpoint is None and spec.name:
        endpoint = yield find_endpoint_by_tags(
            cluster, generate_endpoint_name(cluster.infra_name, spec.name))

    steps = []
    if spec.subdomain_name:
        name = record_name(spec.subdomain_name, cluster.domain_name)
        published = yield get_published_record(cluster, name)
        if published is not None:
            steps.append(DeleteRecord(zone_id=cluster.hosted_zone_id,
                                      name=name, value=published))
    if endpoint is not None:
        steps.append(DeleteEndpoint(endpoint_id=endpoint.id))

    status, reasons = yield _execute_steps(steps)
    if status is not StepResult.SUCCESS:
        yield do_return(_outcome_from_steps(
            endpoint.id if endpoint is not None else spec.endpoint_id,
            status, reasons))
    yield do_return(ReconcileOutcome.Deleted())


@do
def execute_deletion(cluster, spec):
    """
    Remove the endpoint's DNS record and the endpoint itself.

    :param ClusterContext cluster: the cluster the endpoint belongs to
    :param DesiredSpec spec: the spec whose removal was requested

    :return: Effect of :obj:`ReconcileOutcome`, ``Deleted`` once nothing is
        left
    """
    yield msg('begin-deletion')
    try:
        outcome = yield _delete_endpoint(cluster, spec)
    except Exception as e:
        outcome = outcome_from_error(spec.endpoint_id, e)
    yield do_return(outcome)


@do
def converge_one_endpoint(cluster, key,
                          execute_convergence=execute_convergence,
                          execute_deletion=execute_deletion):
    """
    Run a pass for the endpoint stored under ``key`` and record its outcome.

    :return: Effect of :obj:`ReconcileOutcome`, or None if there is no
        longer anything stored under ``key``
    """
    try:
        spec = yield Effect(GetDesiredSpec(key))
    except NoSuchEndpointSpecError:
        yield msg('endpoint-spec-gone')
        yield do_return(None)

    if spec.deleting:
        outcome = yield execute_deletion(cluster, spec)
    else:
        outcome = yield execute_convergence(cluster, spec)
    yield Effect(UpdateEndpointStatus(key, outcome))
    yield do_return(outcome)


class CancelledPassError(Exception):
    """
    Raised for every intent a convergence pass tries to perform after it was
    cancelled.
    """


def _cancellable_dispatcher(dispatcher, cancelled):
    """
    Wrap ``dispatcher`` so that once ``cancelled`` is non-empty, every intent
    fails with :class:`CancelledPassError` instead of being performed.
    """
    @sync_performer
    def refuse(_, intent):
        raise CancelledPassError(intent)

    def dispatch(intent):
        if cancelled:
            return refuse
        return dispatcher(intent)

    return dispatch


class Converger(MultiService):
    """
    A service that runs convergence passes for every endpoint in the store,
    periodically and whenever it is triggered, and requeues passes according
    to their outcome.  See Note [Convergence passes].
    """

    def __init__(self, log, dispatcher, clock, rate_limiter, region,
                 infra_name, domain_name, interval=60, not_ready_interval=10,
                 pass_timeout=300, converge_one_endpoint=converge_one_endpoint):
        """
        :param log: a bound log
        :param dispatcher: The dispatcher to use to perform effects.
        :param clock: ``IReactorTime`` provider used for requeues and
            timeouts
        :param IRateLimiter rate_limiter: decides how long Degraded
            endpoints wait
        :param str region: the cluster's AWS region
        :param str infra_name: the cluster's infrastructure name
        :param str domain_name: the domain of the cluster's private hosted
            zone
        :param interval: seconds between sweeps over every endpoint
        :param not_ready_interval: seconds NotReady endpoints wait
        :param pass_timeout: seconds after which a pass is cancelled
        :param callable converge_one_endpoint: like
            :func:`converge_one_endpoint`, to be used for test injection only
        """
        MultiService.__init__(self)
        self.log = log.bind(vpce_service='converger')
        self._dispatcher = dispatcher
        self.clock = clock
        self.rate_limiter = rate_limiter
        self.region = region
        self.infra_name = infra_name
        self.domain_name = domain_name
        self.not_ready_interval = not_ready_interval
        self.pass_timeout = pass_timeout
        self._converge_one_endpoint = converge_one_endpoint

        # ephemeral mutable state
        self.cluster = None
        self.currently_converging = set()
        self.triggered_while_converging = set()
        self.requeued = {}  # {key: IDelayedCall}

        timer = TimerService(interval, self.trigger_all)
        timer.clock = clock
        timer.setServiceParent(self)

    def stopService(self):
        """
        Cancel every requeued pass and stop.
        """
        for call in self.requeued.values():
            call.cancel()
        self.requeued.clear()
        return MultiService.stopService(self)

    def _perform(self, eff, cancelled=None, **fields):
        dispatcher = self._dispatcher
        if cancelled is not None:
            dispatcher = _cancellable_dispatcher(dispatcher, cancelled)
        return perform(
            dispatcher,
            with_log(eff, vpce_service='converger', **fields))

    def refresh_cluster(self):
        """
        Look up the cluster's VPC and hosted zone again and use the result
        for every pass started from now on.

        :return: Deferred of the new :obj:`ClusterContext`
        """
        d = self._perform(msg_with_time(
            'refresh-cluster',
            get_cluster_context(self.region, self.infra_name,
                                self.domain_name)))

        def swap(cluster):
            self.cluster = cluster
            return cluster

        return d.addCallback(swap)

    def _get_cluster(self):
        if self.cluster is None:
            return self.refresh_cluster()
        return succeed(self.cluster)

    def trigger_all(self):
        """
        Refresh the cluster and trigger a pass for every endpoint in the
        store.  Errors are logged, so that the periodic sweep keeps going.
        """
        d = self.refresh_cluster()
        d.addErrback(self.log.err, 'refresh-cluster-error')
        d.addCallback(lambda _: self._perform(Effect(ListEndpointKeys())))
        d.addCallback(
            lambda keys: gatherResults([self.trigger(key) for key in keys]))
        d.addErrback(self.log.err, 'trigger-all-error')
        return d

    def trigger(self, key):
        """
        Run a pass for the endpoint stored under ``key``, unless one is
        already running, in which case another one runs after it.

        A pass that times out is reported as failed right away, but the key
        counts as converging until the pass's effects actually stop: every
        intent it performs after the timeout fails with
        :class:`CancelledPassError`.

        :return: Deferred that fires with the outcome of the pass, or None if
            no pass was started
        """
        self._cancel_requeue(key)
        if key in self.currently_converging:
            self.triggered_while_converging.add(key)
            return succeed(None)

        self.currently_converging.add(key)
        cancelled = []
        result = Deferred(lambda _: cancelled.append(True))
        timeout_deferred(result, self.pass_timeout, self.clock,
                         'convergence of {0}'.format(key))
        result.addCallbacks(self._handle_outcome, self._handle_error,
                            callbackArgs=(key,), errbackArgs=(key,))

        running = self._get_cluster()
        running.addCallback(
            lambda cluster: self._perform(
                self._converge_one_endpoint(cluster, key),
                cancelled=cancelled, endpoint_key=key))
        running.addBoth(self._pass_done, result, key)
        return result

    def _pass_done(self, outcome, result, key):
        if not result.called:
            if isinstance(outcome, Failure):
                result.errback(outcome)
            else:
                result.callback(outcome)
        elif (isinstance(outcome, Failure) and
              not outcome.check(CancelledPassError)):
            self.log.err(outcome, 'cancelled-pass-error', endpoint_key=key)
        else:
            self.log.msg('cancelled-pass-stopped', endpoint_key=key)

        self.currently_converging.discard(key)
        if key in self.triggered_while_converging:
            self.triggered_while_converging.discard(key)
            self.trigger(key)

    def _cancel_requeue(self, key):
        call = self.requeued.pop(key, None)
        if call is not None and call.active():
            call.cancel()

    def _requeue(self, key, delay):
        self._cancel_requeue(key)

        def requeued():
            self.requeued.pop(key, None)
            self.trigger(key)

        self.requeued[key] = self.clock.callLater(delay, requeued)

    def _handle_outcome(self, outcome, key):
        """
        Log the outcome of a pass and schedule the next one.
        """
        log = self.log.bind(endpoint_key=key)
        if outcome is None:
            self.rate_limiter.forget(key)
            return outcome
        limiter = self.rate_limiter
        not_ready_interval = self.not_ready_interval

        @match(ReconcileOutcome)
        class _next_pass(object):
            def Converged(endpoint_id, record):
                log.msg('converge-succeeded', endpoint_id=endpoint_id,
                        record=record.value)
                limiter.forget(key)

            def Deleted():
                log.msg('converge-deleted')
                limiter.forget(key)

            def NotReady(endpoint_id, reasons):
                log.msg('converge-not-ready', endpoint_id=endpoint_id,
                        reasons=present_reasons(reasons),
                        delay=not_ready_interval)
                limiter.forget(key)
                return not_ready_interval

            def Degraded(endpoint_id, reasons):
                delay = limiter.when(key)
                log.msg('converge-degraded', endpoint_id=endpoint_id,
                        reasons=[structure_reason(r) for r in reasons],
                        delay=delay)
                return delay

            def Failed(endpoint_id, reasons):
                log.msg('converge-failed', isError=True,
                        endpoint_id=endpoint_id,
                        reasons=[structure_reason(r) for r in reasons],
                        user_reasons=present_reasons(reasons))

        delay = _next_pass(outcome)
        if delay is not None:
            self._requeue(key, delay)
        return outcome

    def _handle_error(self, failure, key):
        """
        A pass blew up or timed out before it could produce an outcome: log
        it and retry with backoff.
        """
        delay = self.rate_limiter.when(key)
        self.log.err(failure, 'converge-pass-error', endpoint_key=key,
                     delay=delay)
        self._requeue(key, delay)
