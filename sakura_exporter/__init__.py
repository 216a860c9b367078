"""Metric collectors for Sakura Cloud servers, NFS, mobile gateways, SIMs and proxy load balancers."""

__version__ = "0.1.0"

__all__ = [
    "metrics",
    "resources",
    "mobile_gateway",
    "nfs",
    "sim",
    "server",
    "proxy_lb",
]