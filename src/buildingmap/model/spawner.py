"""
Spawner
=======
Turns a loaded BuildingMap into live scene entities and offers the small
editing API used by tools and tests (add/remove vertices and dependents).
"""
from __future__ import annotations

import copy
import logging
from typing import Optional

from buildingmap.model.building_map import (
    BuildingMap,
    CrowdSim,
    Lane,
    Level,
    Measurement,
    Model,
    Vertex,
    Wall,
)
from buildingmap.model.scene import Entity, LevelExtra, LevelVerticesManager, SceneGraph

logger = logging.getLogger(__name__)


class Spawner:
    def __init__(self, scene: SceneGraph) -> None:
        self.scene = scene

    def spawn_root(self, name: str, crowd_sim: Optional[CrowdSim] = None) -> Entity:
        root = self.scene.spawn()
        self.scene.site_map_roots.add(root)
        self.scene.names[root] = name
        self.scene.crowd_sims[root] = copy.deepcopy(crowd_sim) if crowd_sim is not None else CrowdSim()
        return root

    def spawn_map(self, building_map: BuildingMap) -> Entity:
        """
        Spawn a whole document under a new site map root.
        Right after spawning, every level's live vertex ids equal the
        document's vertex indices.
        """
        root = self.spawn_root(building_map.name, building_map.crowd_sim)
        for level_name, level in building_map.levels.items():
            self.spawn_level(root, level_name, level)
        logger.info(f"Spawned map '{building_map.name}' with {len(building_map.levels)} level(s).")
        return root

    def spawn_level(self, root: Entity, name: str, level: Optional[Level] = None) -> Entity:
        level = level if level is not None else Level()
        entity = self.scene.spawn(parent=root)
        self.scene.names[entity] = name
        self.scene.level_extras[entity] = LevelExtra(
            drawing=copy.deepcopy(level.drawing),
            elevation=level.elevation,
            flattened_x_offset=level.flattened_x_offset,
            flattened_y_offset=level.flattened_y_offset,
        )
        self.scene.vertex_managers[entity] = LevelVerticesManager()

        for vertex in level.vertices:
            self.spawn_vertex(entity, vertex)
        for lane in level.lanes:
            self.spawn_lane(entity, lane)
        for measurement in level.measurements:
            self.spawn_measurement(entity, measurement)
        for wall in level.walls:
            self.spawn_wall(entity, wall)
        for model in level.models:
            self.spawn_model(entity, model)

        logger.debug(
            f"Spawned level '{name}': {len(level.vertices)} vertices, {len(level.lanes)} lanes, "
            f"{len(level.measurements)} measurements, {len(level.walls)} walls, {len(level.models)} models"
        )
        return entity

    def spawn_vertex(self, level: Entity, vertex: Vertex) -> Entity:
        """Add a vertex to a level; its live id is the next id of the level's manager."""
        manager = self.scene.get(self.scene.vertex_managers, level, "LevelVerticesManager")
        entity = self.scene.spawn(parent=level)
        self.scene.vertices[entity] = copy.deepcopy(vertex)
        self.scene.ids[entity] = manager.add(entity)
        return entity

    def spawn_lane(self, level: Entity, lane: Lane) -> Entity:
        entity = self.scene.spawn(parent=level)
        self.scene.lanes[entity] = copy.deepcopy(lane)
        return entity

    def spawn_measurement(self, level: Entity, measurement: Measurement) -> Entity:
        entity = self.scene.spawn(parent=level)
        self.scene.measurements[entity] = copy.deepcopy(measurement)
        return entity

    def spawn_wall(self, level: Entity, wall: Wall) -> Entity:
        entity = self.scene.spawn(parent=level)
        self.scene.walls[entity] = copy.deepcopy(wall)
        return entity

    def spawn_model(self, level: Entity, model: Model) -> Entity:
        entity = self.scene.spawn(parent=level)
        self.scene.models[entity] = copy.deepcopy(model)
        return entity

    def vertex_entity(self, level: Entity, vertex_id: int) -> Optional[Entity]:
        manager = self.scene.get(self.scene.vertex_managers, level, "LevelVerticesManager")
        return manager.get(vertex_id)

    def despawn_vertex(self, vertex: Entity) -> None:
        """
        Delete a vertex. Its id is released from the level's manager, leaving
        a gap in the live ids. Dependents are not touched.
        """
        level = self.scene.parent_of(vertex)
        vertex_id = self.scene.get(self.scene.ids, vertex, "Id")
        if level is not None and level in self.scene.vertex_managers:
            self.scene.vertex_managers[level].remove(vertex_id)
        self.scene.despawn(vertex)
        logger.debug(f"Despawned vertex {vertex_id} (entity {vertex}).")
