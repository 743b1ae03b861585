"""Entity that carries other entities (a tote, pallet or batch)."""

from __future__ import annotations

from typing import Any

from processflow.components.common import Part


class EntityContainer(Part):
    """A Part holding other entities in insertion order.

    Each contained entity may carry a match value, so an unpacking station
    can take out only the entities that belong together.
    """

    def __init__(self, name: str, **attributes: Any):
        super().__init__(name, **attributes)
        self._contents: list[tuple[Any, int | None]] = []

    def add_entity(self, entity: Any, match: int | None = None) -> None:
        self._contents.append((entity, match))

    def remove_entity(self, match: int | None = None) -> Any:
        """Remove the oldest entity (with ``match``, if given); None if there is none."""
        for index, (entity, entity_match) in enumerate(self._contents):
            if match is None or entity_match == match:
                del self._contents[index]
                return entity
        return None

    def get_count(self, match: int | None = None) -> int:
        if match is None:
            return len(self._contents)
        return sum(1 for _, m in self._contents if m == match)

    @property
    def count(self) -> int:
        return len(self._contents)

    @property
    def is_empty(self) -> bool:
        return not self._contents

    @property
    def entities(self) -> list[Any]:
        return [entity for entity, _ in self._contents]

    def __repr__(self) -> str:
        return f"EntityContainer({self.name!r}, count={len(self._contents)})"
