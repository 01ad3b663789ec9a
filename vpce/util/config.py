"""
Implement a global configuration API.
"""
from toolz.dicttoolz import get_in

from vpce.errors import ConfigurationError


REQUIRED_KEYS = ('region', 'infra_name', 'domain_name')

_config_data = {}


def set_config_data(data):
    """
    Set the global configuration data.

    :param dict data: The configuration data, probably loaded from some JSON.
    """
    global _config_data
    _config_data = data


def config_value(name, default=None):
    """
    :param str name: Name is a . separated path to a configuration value
        stored in a nested dictionary.
    :param default: Returned when the value is not configured.

    :returns: The value specificed in the configuration file, or ``default``.
    """
    return get_in(name.split('.'), _config_data, default)


def check_required_config(data):
    """
    Make sure the configuration has everything the converger can't run
    without.

    :param dict data: the loaded configuration
    :return: ``data``
    :raise: :class:`ConfigurationError` if a required key is missing or empty
    """
    missing = [key for key in REQUIRED_KEYS if not data.get(key)]
    if missing:
        raise ConfigurationError(
            'Missing required configuration: {0}'.format(', '.join(missing)))
    return data
