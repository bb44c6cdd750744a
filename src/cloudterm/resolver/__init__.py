"""Address Resolver module for cloudterm.

Turns an instance identifier into a connectable public address, failing
with a typed error when the instance is unknown, not running, or not
yet addressable.
"""

from __future__ import annotations

from cloudterm.config.settings import ResolverConfig
from cloudterm.resolver.base import (
    AddressResolver,
    AddressUnavailableError,
    InstanceNotFoundError,
    InstanceNotRunningError,
    ResolverError,
)
from cloudterm.resolver.http_backend import HttpAddressResolver
from cloudterm.resolver.static import StaticAddressResolver

__all__ = [
    "AddressResolver",
    "AddressUnavailableError",
    "HttpAddressResolver",
    "InstanceNotFoundError",
    "InstanceNotRunningError",
    "ResolverError",
    "StaticAddressResolver",
    "build_resolver",
]


def build_resolver(config: ResolverConfig) -> AddressResolver:
    """Create the resolver backend selected in configuration."""
    if config.backend == "http":
        return HttpAddressResolver(
            base_url=config.http_base_url,
            path=config.http_path,
            timeout=config.http_timeout,
        )
    return StaticAddressResolver(config.instances)
