"""
Vertex Re-keying
================
The document stores each level's vertices as a list and every lane, wall and
measurement refers to vertices by list index. Live vertex ids are sparse
(deleting a vertex leaves a gap), so on save they are renumbered to
0..n-1 in child order and every reference is rewritten through the
resulting old -> new map.

Two passes per level: all vertices are re-keyed first, then dependents are
rewritten against the complete map.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Dict, List, Tuple

from buildingmap.exceptions import ReferentialIntegrityError
from buildingmap.model.building_map import Lane, Measurement, Vertex, VertexPair, Wall
from buildingmap.model.scene import Entity, LevelVerticesManager, SceneGraph

logger = logging.getLogger(__name__)

# (scene table, label used in messages)
DEPENDENT_TABLES: Tuple[Tuple[str, str], ...] = (
    ("lanes", "lane"),
    ("measurements", "measurement"),
    ("walls", "wall"),
)


@dataclass
class VertexRekeying:
    """Result of re-keying one level's vertices."""
    level_name: str
    vertices: List[Vertex] = field(default_factory=list)
    vertex_entities: List[Entity] = field(default_factory=list)
    id_map: Dict[int, int] = field(default_factory=dict)
    manager: LevelVerticesManager = field(default_factory=LevelVerticesManager)


@dataclass
class RewrittenReferences:
    """Dependents of one level with their pairs rewritten to dense indices."""
    lanes: List[Lane] = field(default_factory=list)
    measurements: List[Measurement] = field(default_factory=list)
    walls: List[Wall] = field(default_factory=list)
    # (scene table, entity, rewritten pair) for updating the live scene later
    updates: List[Tuple[str, Entity, VertexPair]] = field(default_factory=list)


def rekey_level_vertices(scene: SceneGraph, level: Entity) -> VertexRekeying:
    """
    Collect the level's vertices in child order and assign dense ids.

    The live manager is only read here; replacing it is left to the caller
    once the whole save has succeeded.
    """
    level_name = scene.name_of(level)
    live_manager = scene.get(scene.vertex_managers, level, "LevelVerticesManager")
    rekeying = VertexRekeying(level_name=level_name)

    for child in scene.children_of(level):
        vertex = scene.vertices.get(child)
        if vertex is None:
            continue

        old_id = scene.get(scene.ids, child, "Id")
        if live_manager.get(old_id) != child:
            raise ReferentialIntegrityError(
                level_name, "vertex", child, old_id,
                detail=f"has id {old_id}, which is not registered to it in the level's vertex manager",
            )
        if old_id in rekeying.id_map:
            raise ReferentialIntegrityError(
                level_name, "vertex", child, old_id,
                detail=f"reuses vertex id {old_id} already taken by another vertex",
            )

        new_id = rekeying.manager.add(child)
        rekeying.id_map[old_id] = new_id
        rekeying.vertices.append(vertex)
        rekeying.vertex_entities.append(child)

    logger.debug(f"Level '{level_name}': re-keyed {len(rekeying.vertices)} vertices.")
    return rekeying


def rewrite_pair(pair: VertexPair, id_map: Dict[int, int], level_name: str,
                 kind: str, entity: Entity) -> VertexPair:
    """Return a copy of `pair` pointing at the re-keyed vertices."""
    new_ids = []
    for old_id in pair.vertices:
        if old_id not in id_map:
            raise ReferentialIntegrityError(level_name, kind, entity, old_id)
        new_ids.append(id_map[old_id])
    return pair.with_vertices(new_ids[0], new_ids[1])


def rewrite_level_references(scene: SceneGraph, level: Entity,
                             rekeying: VertexRekeying) -> RewrittenReferences:
    """Rewrite every lane, measurement and wall of the level, in child order."""
    rewritten = RewrittenReferences()

    for child in scene.children_of(level):
        for table_name, kind in DEPENDENT_TABLES:
            pair = getattr(scene, table_name).get(child)
            if pair is None:
                continue
            new_pair = rewrite_pair(pair, rekeying.id_map, rekeying.level_name, kind, child)
            getattr(rewritten, table_name).append(new_pair)
            rewritten.updates.append((table_name, child, new_pair))

    return rewritten
