"""
Forward Proxy Core Module

Core functionality of the forwarding proxy:
- Contract VM (state, gas, message calls, ABI helpers)
- Forwarding and permissioned forwarding proxies
- Configuration and structured logging
"""

__all__ = []
