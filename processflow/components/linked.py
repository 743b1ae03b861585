"""Base class for components that pass entities along a process flow."""

from __future__ import annotations

import logging
from typing import Any

from processflow.core.entity import Entity

logger = logging.getLogger(__name__)


class LinkedComponent(Entity):
    """Receives entities via ``add_entity`` and hands them to ``next_component``.

    Attributes:
        next_component: Downstream component, or None to discard entities.
        received_entity: The entity most recently taken in for processing.
    """

    def __init__(self, name: str, next_component: LinkedComponent | None = None):
        super().__init__(name)
        self.next_component = next_component
        self.received_entity: Any = None
        self._number_added = 0
        self._number_processed = 0
        self._initial_added = 0
        self._initial_processed = 0

    def initialize(self) -> None:
        super().initialize()
        self.received_entity = None
        self._number_added = 0
        self._number_processed = 0
        self._initial_added = 0
        self._initial_processed = 0

    def resolve_references(self) -> None:
        super().resolve_references()
        if self.next_component is not None:
            self.sim.require_registered(self.next_component, self, "next_component")

    def add_entity(self, entity: Any) -> None:
        """Take in an entity. Subclasses extend this with their own routing."""
        self.register_entity(entity)

    def register_entity(self, entity: Any) -> None:
        self.received_entity = entity
        self._number_added += 1

    def send_to_next_component(self, entity: Any) -> None:
        self._number_processed += 1
        if self.next_component is None:
            logger.debug("[%s] Disposed of %s", self.name, entity)
            return
        logger.debug("[%s] Sending %s to %s", self.name, entity, self.next_component.name)
        self.next_component.add_entity(entity)

    def clear_statistics(self) -> None:
        super().clear_statistics()
        self._initial_added = self._number_added
        self._initial_processed = self._number_processed

    @property
    def number_added(self) -> int:
        """Entities taken in since the last statistics reset."""
        return self._number_added - self._initial_added

    @property
    def number_processed(self) -> int:
        """Entities sent on since the last statistics reset."""
        return self._number_processed - self._initial_processed

    @property
    def number_in_progress(self) -> int:
        return self._number_added - self._number_processed
