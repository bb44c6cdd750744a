"""In-memory address resolver backed by a configured instance table."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from cloudterm.domain.models import InstanceRecord
from cloudterm.resolver.base import AddressResolver

logger = logging.getLogger(__name__)


class StaticAddressResolver(AddressResolver):
    """Looks instances up in a fixed mapping of id -> record."""

    def __init__(self, instances: Mapping[str, InstanceRecord] | None = None) -> None:
        self._instances: dict[str, InstanceRecord] = dict(instances or {})

    def set_instance(self, instance_id: str, record: InstanceRecord) -> None:
        self._instances[instance_id] = record

    async def describe(self, instance_id: str) -> InstanceRecord | None:
        return self._instances.get(instance_id)
