"""Constants."""

from constantly import NamedConstant, Names


OPERATOR_TAG_KEY = 'vpce.openshift.io/managed'
OPERATOR_TAG_VALUE = 'true'

NAME_TAG_KEY = 'Name'

CLUSTER_TAG_PREFIX = 'kubernetes.io/cluster/'
CLUSTER_TAG_VALUE = 'owned'

PRIVATE_SUBNET_TAG_KEY = 'kubernetes.io/role/internal-elb'

# AWS rejects Name tag values longer than this
MAX_TAG_VALUE_LENGTH = 255

VPC_ENDPOINT_TYPE_INTERFACE = 'Interface'

RECORD_TYPE = 'CNAME'
RECORD_TTL = 300


class ServiceType(Names):
    """
    Constants representing the AWS services the converger talks to.
    """
    EC2 = NamedConstant()
    ROUTE53 = NamedConstant()


def get_service_configs(config):
    """
    Return service configurations for all services based on the config data.

    Returns a dict, where keys are :obj:`ServiceType` members, and values are
    service configs. A service config is a dict with a ``region`` key.

    Route53 is a global service, but boto3 still wants a region to sign
    requests with, so it defaults to ``us-east-1`` unless
    ``route53_region`` is configured.

    :param dict config: Config from file
    """
    return {
        ServiceType.EC2: {'region': config['region']},
        ServiceType.ROUTE53: {
            'region': config.get('route53_region', 'us-east-1')},
    }
