"""
Save Errors
===========
Every failure of a save pass aborts the whole operation; nothing is written
and nothing is retried. The classes below only differ in what went wrong so
that callers (and tests) can tell the cases apart.
"""
from __future__ import annotations

from typing import Optional


class BuildingMapError(Exception):
    """Base class for all errors raised while saving a building map."""


class PreconditionError(BuildingMapError):
    """The scene has no single save root (zero or several were found)."""

    def __init__(self, root_count: int) -> None:
        self.root_count = root_count
        if root_count == 0:
            msg = "Cannot save map: no site map root entity found."
        else:
            msg = f"Cannot save map: expected exactly one site map root, found {root_count}."
        super().__init__(msg)


class MissingComponentError(BuildingMapError, KeyError):
    """An entity lacks a component the save pass requires."""

    def __init__(self, component: str, entity: int) -> None:
        self.component = component
        self.entity = entity
        super().__init__(f"Entity {entity} has no '{component}' component.")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.args[0]


class ReferentialIntegrityError(BuildingMapError):
    """A lane, wall or measurement points at a vertex missing from its level."""

    def __init__(self, level: str, kind: str, entity: int, vertex_id: int,
                 detail: Optional[str] = None) -> None:
        self.level = level
        self.kind = kind
        self.entity = entity
        self.vertex_id = vertex_id
        if detail is None:
            detail = f"references vertex id {vertex_id}, which does not exist on this level"
        super().__init__(f"Level '{level}': {kind} (entity {entity}) {detail}.")


class DuplicateLevelError(BuildingMapError):
    """Two levels under the same root share a name."""

    def __init__(self, level: str) -> None:
        self.level = level
        super().__init__(f"Duplicate level name '{level}'.")


class WriteError(BuildingMapError):
    """The persistence sink could not durably write the document."""

    def __init__(self, location: str, reason: Optional[BaseException] = None) -> None:
        self.location = location
        self.reason = reason
        msg = f"Failed to write building map to '{location}'"
        if reason is not None:
            msg += f": {reason}"
        super().__init__(msg)
