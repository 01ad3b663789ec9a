"""
Twisted Application plugin for the VPC endpoint converger.
"""
import jsonfig

from twisted.application.service import MultiService
from twisted.internet import reactor
from twisted.python import usage

from vpce.cloud_client.aws import make_clients
from vpce.constants import get_service_configs
from vpce.convergence.service import Converger
from vpce.effect_dispatcher import get_full_dispatcher
from vpce.errors import ConfigurationError
from vpce.log import log
from vpce.models.mock import MockEndpointStore
from vpce.util.config import (
    check_required_config, config_value, set_config_data)
from vpce.util.retry import default_rate_limiter


class Options(usage.Options):
    """
    Options for the converger.
    """

    optParameters = [
        ["config", "c", "config.json",
         "path to JSON configuration file."]
    ]

    def postOptions(self):
        """
        Merge our commandline arguments with our config file.
        """
        try:
            self.update(check_required_config(
                jsonfig.from_path(self['config'])))
        except ConfigurationError as e:
            raise usage.UsageError(e.message)


def setup_converger(parent, dispatcher, clock=reactor):
    """
    Create a Converger service from the configuration and add it to
    ``parent``.
    """
    rate_limiter = default_rate_limiter(
        clock,
        base_delay=config_value('converger.base_delay', 1),
        max_delay=config_value('converger.max_delay', 5000),
        qps=config_value('converger.qps', 10),
        burst=config_value('converger.burst', 100))
    converger = Converger(
        log, dispatcher, clock, rate_limiter,
        region=config_value('region'),
        infra_name=config_value('infra_name'),
        domain_name=config_value('domain_name'),
        interval=config_value('converger.interval', 60),
        not_ready_interval=config_value('converger.not_ready_interval', 10),
        pass_timeout=config_value('converger.pass_timeout', 300))
    converger.setServiceParent(parent)
    return converger


def makeService(config, clients=None):
    """
    Set up the converger service.

    :param config: the options, merged with the configuration file
    :param dict clients: AWS clients to use instead of creating boto3 ones
    """
    config = dict(config)
    set_config_data(config)

    parent = MultiService()

    if clients is None:
        clients = make_clients(get_service_configs(config))
    store = MockEndpointStore.from_config(config_value('endpoints'))
    dispatcher = get_full_dispatcher(reactor, clients, log, store)
    setup_converger(parent, dispatcher)
    return parent
