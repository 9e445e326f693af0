"""
Scene Graph (Live Editing State)
================================
In-memory representation of a building map while it is being edited.

Entities are plain integers. Structure is an explicit parent/children tree
(root -> levels -> level children) and every kind of data lives in its own
typed table keyed by entity, so a vertex entity is one that has a row in
`vertices`, a lane one that has a row in `lanes`, and so on.

Vertex ids are level-scoped and handed out by the level's
LevelVerticesManager. They become sparse as vertices are deleted and are
only made dense again when the map is saved.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Dict, Iterator, List, Optional, Set, TypeVar

from buildingmap.exceptions import MissingComponentError
from buildingmap.model.building_map import (
    CrowdSim,
    Drawing,
    Lane,
    Measurement,
    Model,
    Vertex,
    Wall,
)

logger = logging.getLogger(__name__)

Entity = int
T = TypeVar("T")


@dataclass
class LevelExtra:
    """Level metadata that is saved verbatim."""
    drawing: Drawing = field(default_factory=Drawing)
    elevation: float = 0.0
    flattened_x_offset: float = 0.0
    flattened_y_offset: float = 0.0


class LevelVerticesManager:
    """
    Hands out level-scoped vertex ids.

    Ids come from a monotonic counter, so removing a vertex leaves a gap
    that is never filled by a later add.
    """

    def __init__(self) -> None:
        self._id_to_entity: Dict[int, Entity] = {}
        self._next_id: int = 0

    def add(self, entity: Entity) -> int:
        vertex_id = self._next_id
        self._id_to_entity[vertex_id] = entity
        self._next_id += 1
        return vertex_id

    def remove(self, vertex_id: int) -> Optional[Entity]:
        return self._id_to_entity.pop(vertex_id, None)

    def get(self, vertex_id: int) -> Optional[Entity]:
        return self._id_to_entity.get(vertex_id)

    def ids(self) -> List[int]:
        return sorted(self._id_to_entity)

    def __contains__(self, vertex_id: object) -> bool:
        return vertex_id in self._id_to_entity

    def __len__(self) -> int:
        return len(self._id_to_entity)

    def __iter__(self) -> Iterator[int]:
        return iter(self.ids())

    def __repr__(self) -> str:
        return f"LevelVerticesManager(ids={self.ids()}, next_id={self._next_id})"


class SceneGraph:
    """Entity tree plus one table per component type."""

    def __init__(self) -> None:
        self._next_entity: Entity = 0
        self._children: Dict[Entity, List[Entity]] = {}
        self._parent: Dict[Entity, Entity] = {}

        self.site_map_roots: Set[Entity] = set()
        self.names: Dict[Entity, str] = {}
        self.ids: Dict[Entity, int] = {}
        self.vertices: Dict[Entity, Vertex] = {}
        self.lanes: Dict[Entity, Lane] = {}
        self.walls: Dict[Entity, Wall] = {}
        self.measurements: Dict[Entity, Measurement] = {}
        self.models: Dict[Entity, Model] = {}
        self.level_extras: Dict[Entity, LevelExtra] = {}
        self.crowd_sims: Dict[Entity, CrowdSim] = {}
        self.vertex_managers: Dict[Entity, LevelVerticesManager] = {}

    # --- ENTITIES & HIERARCHY ---

    def spawn(self, parent: Optional[Entity] = None) -> Entity:
        entity = self._next_entity
        self._next_entity += 1
        self._children[entity] = []
        if parent is not None:
            self.add_child(parent, entity)
        return entity

    def exists(self, entity: Entity) -> bool:
        return entity in self._children

    def add_child(self, parent: Entity, child: Entity) -> None:
        if not self.exists(parent):
            raise KeyError(f"Parent entity {parent} does not exist.")
        old_parent = self._parent.get(child)
        if old_parent is not None:
            self._children[old_parent].remove(child)
        self._children[parent].append(child)
        self._parent[child] = parent

    def children_of(self, entity: Entity) -> List[Entity]:
        """Children in insertion order (a copy, safe to iterate while editing)."""
        return list(self._children.get(entity, []))

    def parent_of(self, entity: Entity) -> Optional[Entity]:
        return self._parent.get(entity)

    def despawn(self, entity: Entity) -> None:
        """Remove an entity, its components and all of its descendants."""
        for child in self.children_of(entity):
            self.despawn(child)

        parent = self._parent.pop(entity, None)
        if parent is not None and parent in self._children:
            self._children[parent].remove(entity)
        self._children.pop(entity, None)

        self.site_map_roots.discard(entity)
        for table in self._tables():
            table.pop(entity, None)

    def _tables(self) -> List[Dict[Entity, object]]:
        return [
            self.names, self.ids, self.vertices, self.lanes, self.walls,
            self.measurements, self.models, self.level_extras, self.crowd_sims,
            self.vertex_managers,
        ]

    # --- COMPONENT ACCESS ---

    @staticmethod
    def get(table: Dict[Entity, T], entity: Entity, component: str) -> T:
        """Read a required component, failing loudly when it is absent."""
        try:
            return table[entity]
        except KeyError:
            raise MissingComponentError(component, entity) from None

    def name_of(self, entity: Entity) -> str:
        return self.get(self.names, entity, "Name")

    def kind_of(self, entity: Entity) -> Optional[str]:
        """Short entity kind label, used in diagnostics."""
        if entity in self.vertices:
            return "vertex"
        if entity in self.lanes:
            return "lane"
        if entity in self.walls:
            return "wall"
        if entity in self.measurements:
            return "measurement"
        if entity in self.models:
            return "model"
        if entity in self.level_extras:
            return "level"
        if entity in self.site_map_roots:
            return "site map root"
        return None

    def find_level(self, name: str) -> Optional[Entity]:
        """First level entity with this name, in hierarchy order."""
        for root in sorted(self.site_map_roots):
            for level in self._children.get(root, []):
                if self.names.get(level) == name:
                    return level
        return None
