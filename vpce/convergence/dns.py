"""
Derivation of an endpoint's DNS record.
"""
from effect.do import do, do_return

from vpce.convergence.gathering import find_endpoint_by_id
from vpce.convergence.model import DnsRecord, EndpointState
from vpce.errors import InvalidInputError, NotReadyError


def record_name(subdomain_name, domain_name):
    """
    Get the fully qualified name of an endpoint's DNS record.

    :raise: :class:`InvalidInputError` if either part is empty
    """
    if not subdomain_name:
        raise InvalidInputError('subdomain name is required')
    if not domain_name:
        raise InvalidInputError('domain name is required')
    return '{0}.{1}'.format(subdomain_name, domain_name)


@do
def generate_record(endpoint_id):
    """
    Generate the DNS record that should point at an endpoint.

    AWS only fills in an endpoint's DNS entries once it is available, so the
    record can't be derived before then.

    :param str endpoint_id: the id of the endpoint
    :return: Effect of :obj:`DnsRecord` pointing at the endpoint's first DNS
        entry
    :raise: :class:`NotReadyError` if the id is empty, the endpoint doesn't
        exist, is not available or has no DNS entries
    """
    if not endpoint_id:
        raise NotReadyError('VPC endpoint id is missing')

    endpoint = yield find_endpoint_by_id(endpoint_id)
    if endpoint is None:
        raise NotReadyError(
            'VPC endpoint {0} does not exist'.format(endpoint_id))
    if endpoint.state is not EndpointState.AVAILABLE:
        raise NotReadyError(
            'VPC endpoint {0} is {1}, not available'.format(
                endpoint_id, endpoint.state.name))
    if not endpoint.dns_entries:
        raise NotReadyError(
            'VPC endpoint {0} has no DNS entries'.format(endpoint_id))
    yield do_return(DnsRecord(value=endpoint.dns_entries[0]))
