"""
Twisted application plugin for the VPC endpoint converger.
"""

from twisted.application.service import ServiceMaker

VpceConverger = ServiceMaker(
    "VPC endpoint converger.",
    "vpce.tap.api",
    "Converge AWS interface VPC endpoints toward their desired state",
    "vpce-converger"
)
