"""
Forward Proxy - caller identity emulation for contracts

A call-forwarding proxy that relays arbitrary calls, value included, to a
target contract so the target sees the proxy as its caller, plus a
permissioned variant restricted to an owner and its wards.

Main Components:
- VM: account-based contract execution with atomic message calls
- Contracts: ForwardProxy, PermissionedForwardProxy, ProxyFactory
- CLI: storage layout inspection and a relay demo
"""

__version__ = "0.2.0"
__author__ = "Forward Proxy Development Team"

__all__ = []
