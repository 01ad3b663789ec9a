"""
In-memory store of endpoint specs, loaded from configuration.
"""
import attr

from twisted.internet.defer import fail, succeed

from zope.interface import implementer

from vpce.convergence.model import DesiredSpec, ReconcileOutcome
from vpce.errors import ConfigurationError
from vpce.models.interface import IEndpointStore, NoSuchEndpointSpecError


def spec_from_config(config):
    """
    Build a :obj:`DesiredSpec` from one item of the ``endpoints``
    configuration list.  The key defaults to the name.

    :raise: :class:`ConfigurationError` if a required field is missing
    """
    missing = [field for field in ('name', 'service_name', 'subdomain_name')
               if not config.get(field)]
    if missing:
        raise ConfigurationError(
            'Endpoint {0!r} is missing {1}'.format(
                config.get('name'), ', '.join(missing)))
    return DesiredSpec(
        key=config.get('key', config['name']),
        name=config['name'],
        service_name=config['service_name'],
        security_group_id=config.get('security_group_id', ''),
        endpoint_id=config.get('endpoint_id', ''),
        subdomain_name=config['subdomain_name'],
        vpc_tags=config.get('vpc_tags', {}),
        deleting=config.get('deleting', False))


@implementer(IEndpointStore)
class MockEndpointStore(object):
    """
    Keeps specs and their latest outcomes in memory.

    :ivar dict specs: ``{key: DesiredSpec}``
    :ivar dict outcomes: ``{key: ReconcileOutcome}``, the latest outcome of
        every spec
    """
    def __init__(self, specs=()):
        self.specs = {spec.key: spec for spec in specs}
        self.outcomes = {}

    @classmethod
    def from_config(cls, endpoints):
        """
        Create a store from the ``endpoints`` configuration list.
        """
        return cls([spec_from_config(config) for config in endpoints or ()])

    def list_keys(self):
        """See :meth:`IEndpointStore.list_keys`."""
        return succeed(sorted(self.specs))

    def get_spec(self, key):
        """See :meth:`IEndpointStore.get_spec`."""
        if key not in self.specs:
            return fail(NoSuchEndpointSpecError(key))
        return succeed(self.specs[key])

    def update_status(self, key, outcome):
        """See :meth:`IEndpointStore.update_status`."""
        if key not in self.specs:
            return fail(NoSuchEndpointSpecError(key))
        if isinstance(outcome, ReconcileOutcome.Deleted):
            del self.specs[key]
            self.outcomes.pop(key, None)
            return succeed(None)
        self.outcomes[key] = outcome
        if outcome.endpoint_id:
            self.specs[key] = attr.evolve(
                self.specs[key], endpoint_id=outcome.endpoint_id)
        return succeed(None)

    def request_deletion(self, key):
        """
        Mark the spec stored under ``key`` for removal.
        """
        if key not in self.specs:
            raise NoSuchEndpointSpecError(key)
        self.specs[key] = attr.evolve(self.specs[key], deleting=True)
