"""Abstract base class for instance address resolution.

Every metadata backend conforms to this interface, so the bridge can
look instances up in a static table during development and in a remote
metadata service in production without changing any other code.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from cloudterm.domain.models import RUNNING_STATE, InstanceAddress, InstanceRecord

logger = logging.getLogger(__name__)


class AddressResolver(ABC):
    """Turns an instance identifier into a connectable address.

    Subclasses only fetch the raw record; the running-state and
    address checks live in :meth:`resolve` so every backend reports
    failures the same way.

    Example usage::

        resolver = StaticAddressResolver({"i-demo": InstanceRecord(state="running", public_ip="203.0.113.5")})
        target = await resolver.resolve("i-demo")
        print(target.address)
    """

    @abstractmethod
    async def describe(self, instance_id: str) -> InstanceRecord | None:
        """Fetch the current metadata for an instance.

        Returns:
            The instance record, or None if the backend has no such
            instance.

        Raises:
            ResolverError: If the backend itself cannot be queried.
        """
        ...

    async def resolve(self, instance_id: str) -> InstanceAddress:
        """Resolve an instance to its public address.

        Raises:
            ValueError: If instance_id is empty.
            InstanceNotFoundError: If the backend reports no such instance.
            InstanceNotRunningError: If the instance is not running.
            AddressUnavailableError: If the instance has no public address yet.
        """
        if not instance_id:
            raise ValueError("instance_id must be a non-empty string")

        record = await self.describe(instance_id)
        if record is None:
            raise InstanceNotFoundError(instance_id)
        if record.state != RUNNING_STATE:
            raise InstanceNotRunningError(instance_id, record.state)
        if not record.public_ip:
            raise AddressUnavailableError(instance_id)

        logger.debug("Resolved %s to %s", instance_id, record.public_ip)
        return InstanceAddress(address=record.public_ip, state=record.state)

    async def aclose(self) -> None:
        """Release backend resources. Safe to call multiple times."""
        return None


class ResolverError(Exception):
    """Raised when an instance cannot be resolved to an address."""

    retryable = False

    def __init__(self, message: str, instance_id: str = "") -> None:
        super().__init__(message)
        self.instance_id = instance_id


class InstanceNotFoundError(ResolverError):
    def __init__(self, instance_id: str) -> None:
        super().__init__("Instance not found", instance_id)


class InstanceNotRunningError(ResolverError):
    def __init__(self, instance_id: str, state: str) -> None:
        super().__init__(f"Instance is {state}, not running", instance_id)
        self.state = state


class AddressUnavailableError(ResolverError):
    """The instance is running but has no public address assigned yet."""

    retryable = True

    def __init__(self, instance_id: str) -> None:
        super().__init__("Instance has no public IP yet", instance_id)
