"""Code related to effecting change based on a convergence plan."""

from effect.do import do, do_return

from vpce.convergence.model import ErrorReason, StepResult


def _step_effect(step):
    # Treat unknown errors as RETRY.
    return step.as_effect().on(
        error=lambda e: (StepResult.RETRY, [ErrorReason.Exception(e)]))


@do
def steps_to_effect(steps):
    """
    Turns a sequence of :class:`IStep` providers into an effect that
    performs them one after the other.

    The steps are ordered (detaching before attaching), so the first step
    that doesn't succeed stops the rest from being performed.

    :return: Effect of a list of (:obj:`StepResult`, reasons) tuples, one for
        every step that was performed
    """
    results = []
    for step in steps:
        result = yield _step_effect(step)
        results.append(result)
        if result[0] is not StepResult.SUCCESS:
            break
    yield do_return(results)
