import logging
import os

import pytest

from buildingmap.config import DEMO_MAPS_PATH
from buildingmap.model.building_map import CrowdSim, Lane, Vertex
from buildingmap.model.io import IOManager
from buildingmap.model.scene import SceneGraph
from buildingmap.model.spawner import Spawner

OFFICE_MAP_PATH = os.path.join(DEMO_MAPS_PATH, "office.building.yaml")


@pytest.fixture
def scene():
    return SceneGraph()


@pytest.fixture
def spawner(scene):
    return Spawner(scene)


@pytest.fixture
def root(spawner):
    return spawner.spawn_root("test_map", CrowdSim(config={"enable": 0, "update_time_step": 0.1}))


@pytest.fixture
def office_map():
    return IOManager.load_map(OFFICE_MAP_PATH)


def spawn_vertices(spawner, level, count):
    """Spawn `count` vertices named v0..v{count-1}; returns their entities (index == live id)."""
    return [
        spawner.spawn_vertex(level, Vertex(x=float(i), y=float(-i), name=f"v{i}"))
        for i in range(count)
    ]


def sparse_level(spawner, root, name, keep, total=None):
    """
    A level whose live vertex ids are exactly `keep` (in increasing order),
    produced by spawning `total` vertices and deleting the others.
    """
    total = total if total is not None else max(keep) + 1
    level = spawner.spawn_level(root, name)
    entities = spawn_vertices(spawner, level, total)
    for vertex_id, entity in enumerate(entities):
        if vertex_id not in keep:
            spawner.despawn_vertex(entity)
    return level


def lane(start, end, **properties):
    return Lane(start=start, end=end, properties=dict(properties))


@pytest.fixture(autouse=True)
def reset_logging():
    """setup_logging() (used by the CLI) attaches handlers to captured streams."""
    yield
    logger = logging.getLogger("buildingmap")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
