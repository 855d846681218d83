"""
vipsync - Cloud load balancer VIP redirect agent.

Keeps a node's iptables NAT rules in sync with the load balancer VIPs
forwarded to it by the Google Compute Engine metadata server.
"""

__version__ = "1.0.0"
__author__ = "vipsync maintainers"
