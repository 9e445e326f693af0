"""
Map Saving
==========
Builds a BuildingMap document from the live scene and hands it to the
persistence sink.

A save pass is all-or-nothing: the whole document is assembled (and every
reference re-keyed) before anything is written, and the live scene is only
updated to the new dense vertex ids after the write succeeded.

The scene must not be edited while a pass runs.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from buildingmap.config import FORMAT_VERSION
from buildingmap.exceptions import DuplicateLevelError, PreconditionError
from buildingmap.controller.rekey import (
    RewrittenReferences,
    VertexRekeying,
    rekey_level_vertices,
    rewrite_level_references,
)
from buildingmap.model.building_map import BuildingMap, Level, Model
from buildingmap.model.io import IOManager
from buildingmap.model.scene import Entity, SceneGraph

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
Sink = Callable[[BuildingMap, PathLike], None]


@dataclass
class LevelPlan:
    entity: Entity
    rekeying: VertexRekeying
    references: RewrittenReferences


@dataclass
class SavePlan:
    """An assembled document plus the live-scene updates it implies."""
    document: BuildingMap
    levels: List[LevelPlan] = field(default_factory=list)

    def commit(self, scene: SceneGraph) -> None:
        """
        Bring the live scene in line with the saved document: each level gets
        the dense vertex manager, vertices get their new ids and dependents
        their rewritten pairs.
        """
        for plan in self.levels:
            scene.vertex_managers[plan.entity] = plan.rekeying.manager
            for new_id, vertex_entity in enumerate(plan.rekeying.vertex_entities):
                scene.ids[vertex_entity] = new_id
            for table_name, entity, pair in plan.references.updates:
                getattr(scene, table_name)[entity] = copy.deepcopy(pair)


def find_save_root(scene: SceneGraph) -> Entity:
    """The single site map root; anything else means there is nothing well defined to save."""
    roots = sorted(scene.site_map_roots)
    if len(roots) != 1:
        raise PreconditionError(len(roots))
    return roots[0]


def assemble_level(scene: SceneGraph, level: Entity,
                   rekeying: VertexRekeying, references: RewrittenReferences) -> Level:
    extra = scene.get(scene.level_extras, level, "LevelExtra")
    models: List[Model] = [
        copy.deepcopy(scene.models[child])
        for child in scene.children_of(level)
        if child in scene.models
    ]
    return Level(
        vertices=copy.deepcopy(rekeying.vertices),
        lanes=references.lanes,
        measurements=references.measurements,
        walls=references.walls,
        models=models,
        drawing=copy.deepcopy(extra.drawing),
        elevation=extra.elevation,
        flattened_x_offset=extra.flattened_x_offset,
        flattened_y_offset=extra.flattened_y_offset,
    )


def assemble_document(scene: SceneGraph) -> SavePlan:
    root = find_save_root(scene)
    map_name = scene.name_of(root)
    crowd_sim = copy.deepcopy(scene.get(scene.crowd_sims, root, "CrowdSim"))

    levels: Dict[str, Level] = {}
    level_plans: List[LevelPlan] = []

    for level in scene.children_of(root):
        name = scene.name_of(level)
        if name in levels:
            raise DuplicateLevelError(name)

        # Vertices first: dependents must be rewritten against the complete map
        rekeying = rekey_level_vertices(scene, level)
        references = rewrite_level_references(scene, level, rekeying)
        levels[name] = assemble_level(scene, level, rekeying, references)
        level_plans.append(LevelPlan(entity=level, rekeying=rekeying, references=references))

        logger.debug(
            f"Level '{name}': {len(levels[name].vertices)} vertices, {len(references.lanes)} lanes, "
            f"{len(references.measurements)} measurements, {len(references.walls)} walls, "
            f"{len(levels[name].models)} models"
        )

    document = BuildingMap(
        name=map_name,
        version=FORMAT_VERSION,
        crowd_sim=crowd_sim,
        levels={name: levels[name] for name in sorted(levels)},
    )
    return SavePlan(document=document, levels=level_plans)


def save_map(scene: SceneGraph, path: PathLike, sink: Optional[Sink] = None) -> Path:
    """
    Run one save pass and return the written location.
    Raises a BuildingMapError subclass (nothing written) on any failure.
    """
    sink = sink if sink is not None else IOManager.save_map
    path = Path(path)
    logger.info(f"Saving to {path}")

    plan = assemble_document(scene)
    sink(plan.document, path)
    plan.commit(scene)

    logger.info(f"Map '{plan.document.name}' saved to: {path}")
    return path
