"""
Forward Proxy contracts.

This module provides:
- ForwardProxy: open call-forwarding proxy
- PermissionedForwardProxy: owner/ward gated call-forwarding proxy
- ProxyFactory: deployment and registry of proxies
- CallerEcho: reference target that reports its caller
"""

from .proxy import (
    OWNER_SLOT,
    TARGET_SLOT,
    WARDS_SLOT,
    ForwardProxy,
    PermissionedForwardProxy,
    ProxyClient,
    ProxyFactory,
    ProxyInfo,
    ProxyType,
    storage_layout,
    ward_slot,
)
from .targets import CALLER_ECHO_SELECTORS, CallerEcho

__all__ = [
    # Proxies
    "ForwardProxy",
    "PermissionedForwardProxy",
    "ProxyFactory",
    "ProxyInfo",
    "ProxyType",
    "ProxyClient",
    # Storage layout
    "TARGET_SLOT",
    "OWNER_SLOT",
    "WARDS_SLOT",
    "ward_slot",
    "storage_layout",
    # Targets
    "CallerEcho",
    "CALLER_ECHO_SELECTORS",
]
