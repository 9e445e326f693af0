"""Document assembly and the save pass."""
import os

import pytest

from buildingmap.config import FORMAT_VERSION
from buildingmap.controller.saver import assemble_document, find_save_root, save_map
from buildingmap.exceptions import (
    DuplicateLevelError,
    MissingComponentError,
    PreconditionError,
    ReferentialIntegrityError,
    WriteError,
)
from buildingmap.model.building_map import CrowdSim, Model, Vertex, Wall
from buildingmap.model.io import IOManager

from conftest import lane, sparse_level, spawn_vertices


class RecordingSink:
    def __init__(self):
        self.calls = []

    def __call__(self, document, path):
        self.calls.append((document, path))


class FailingSink:
    def __call__(self, document, path):
        raise WriteError(str(path), PermissionError("read-only"))


def assert_dense(level):
    """Every reference indexes into 0..n-1 of the level's vertex list."""
    n = len(level.vertices)
    for pair in [*level.lanes, *level.walls, *level.measurements]:
        assert 0 <= pair.start < n
        assert 0 <= pair.end < n


# --- SAVE ROOT ---

def test_no_root_is_a_precondition_failure(scene, tmp_path):
    target = tmp_path / "out.building.yaml"
    with pytest.raises(PreconditionError) as excinfo:
        save_map(scene, target)
    assert excinfo.value.root_count == 0
    assert not target.exists()


def test_two_roots_is_a_precondition_failure(scene, spawner, tmp_path):
    spawner.spawn_root("a")
    spawner.spawn_root("b")
    target = tmp_path / "out.building.yaml"

    with pytest.raises(PreconditionError) as excinfo:
        save_map(scene, target)
    assert excinfo.value.root_count == 2
    assert not target.exists()


def test_find_save_root(scene, root):
    assert find_save_root(scene) == root


# --- DOCUMENT ASSEMBLY ---

def test_document_header(scene, spawner, root):
    spawner.spawn_level(root, "L1")
    document = assemble_document(scene).document

    assert document.name == "test_map"
    assert document.version == FORMAT_VERSION == 2
    assert document.crowd_sim.config == {"enable": 0, "update_time_step": 0.1}
    assert document.crowd_sim is not scene.crowd_sims[root]


def test_levels_are_ordered_by_name(scene, spawner, root):
    for name in ("L3", "B1", "L1"):
        spawner.spawn_level(root, name)
    document = assemble_document(scene).document
    assert list(document.levels) == ["B1", "L1", "L3"]


def test_duplicate_level_names_abort(scene, spawner, root, tmp_path):
    spawner.spawn_level(root, "L1")
    spawner.spawn_level(root, "L1")
    target = tmp_path / "out.building.yaml"

    with pytest.raises(DuplicateLevelError) as excinfo:
        save_map(scene, target)
    assert excinfo.value.level == "L1"
    assert not target.exists()


def test_missing_level_metadata_aborts(scene, spawner, root):
    level = spawner.spawn_level(root, "L1")
    del scene.level_extras[level]
    with pytest.raises(MissingComponentError) as excinfo:
        assemble_document(scene)
    assert excinfo.value.entity == level


def test_missing_crowd_sim_aborts(scene, spawner, root):
    del scene.crowd_sims[root]
    with pytest.raises(MissingComponentError) as excinfo:
        assemble_document(scene)
    assert excinfo.value.component == "CrowdSim"


def test_level_metadata_and_models_are_copied(scene, spawner, root, office_map):
    level = spawner.spawn_level(root, "L1", office_map.levels["L2"])
    spawner.spawn_model(level, Model(name="chair_1", model_name="OfficeChairBlack", x=1.0))

    saved = assemble_document(scene).document.levels["L1"]

    assert saved.drawing.filename == "office_l2.png"
    assert saved.elevation == 4.0
    assert saved.flattened_y_offset == -20.0
    assert saved.models == [Model(name="chair_1", model_name="OfficeChairBlack", x=1.0)]


def test_example_document(scene, spawner, root):
    level = sparse_level(spawner, root, "L1", keep={3, 7})
    spawner.spawn_lane(level, lane(7, 3))

    saved = assemble_document(scene).document.levels["L1"]

    assert [v.name for v in saved.vertices] == ["v3", "v7"]
    assert [ln.vertices for ln in saved.lanes] == [(1, 0)]


def test_same_ids_on_different_levels_are_independent(scene, spawner, root):
    a = sparse_level(spawner, root, "A", keep={0, 4})
    b = sparse_level(spawner, root, "B", keep={4, 9})
    spawner.spawn_lane(a, lane(4, 0))
    spawner.spawn_lane(b, lane(4, 9))

    levels = assemble_document(scene).document.levels

    assert levels["A"].lanes[0].vertices == (1, 0)
    assert levels["B"].lanes[0].vertices == (0, 1)


def test_reference_preservation_after_edits(scene, spawner, office_map):
    """Every saved pair still connects the same two vertices it did before the save."""
    spawner.spawn_map(office_map)
    level = scene.find_level("L1")

    extra = spawner.spawn_vertex(level, Vertex(x=30.0, y=0.0, name="temp"))
    kept = spawner.spawn_vertex(level, Vertex(x=31.0, y=0.0, name="dock"))
    spawner.despawn_vertex(extra)
    spawner.despawn_vertex(spawner.vertex_entity(level, 12))
    spawner.spawn_lane(level, lane(scene.ids[kept], 0))
    spawner.spawn_measurement(level, office_map.levels["L1"].measurements[0].with_vertices(11, scene.ids[kept]))
    for child in scene.children_of(level):
        if child in scene.measurements and scene.measurements[child].end == 12:
            scene.despawn(child)

    def endpoint_names(pairs_table):
        names = []
        for child in scene.children_of(level):
            if child in pairs_table:
                pair = pairs_table[child]
                names.append(tuple(
                    scene.vertices[spawner.vertex_entity(level, vid)].to_list()[:4] for vid in pair.vertices
                ))
        return names

    before = {
        "lanes": endpoint_names(scene.lanes),
        "walls": endpoint_names(scene.walls),
        "measurements": endpoint_names(scene.measurements),
    }

    saved = assemble_document(scene).document.levels["L1"]
    assert_dense(saved)

    for kind in before:
        after = [
            tuple(saved.vertices[i].to_list()[:4] for i in pair.vertices)
            for pair in getattr(saved, kind)
        ]
        assert after == before[kind]

    assert len(saved.vertices) == len(office_map.levels["L1"].vertices)
    assert saved.lanes[-1].vertices == (len(saved.vertices) - 1, 0)


# --- SAVE PASS ---

def test_save_hands_document_to_sink_then_commits(scene, spawner, root, tmp_path):
    level = sparse_level(spawner, root, "L1", keep={2, 5})
    lane_entity = spawner.spawn_lane(level, lane(5, 2))
    sink = RecordingSink()
    target = tmp_path / "map.building.yaml"

    written = save_map(scene, target, sink=sink)

    assert written == target
    [(document, path)] = sink.calls
    assert path == target
    assert document.levels["L1"].lanes[0].vertices == (1, 0)

    # live bookkeeping now reflects the saved state
    assert scene.vertex_managers[level].ids() == [0, 1]
    assert scene.lanes[lane_entity].vertices == (1, 0)
    vertex_entities = [c for c in scene.children_of(level) if c in scene.vertices]
    assert [scene.ids[e] for e in vertex_entities] == [0, 1]
    assert scene.lanes[lane_entity] is not document.levels["L1"].lanes[0]


def test_second_save_is_stable(scene, spawner, root):
    level = sparse_level(spawner, root, "L1", keep={1, 3, 8})
    spawner.spawn_lane(level, lane(8, 1))
    spawner.spawn_wall(level, Wall(start=3, end=8))

    sink = RecordingSink()
    save_map(scene, "first.building.yaml", sink=sink)
    save_map(scene, "second.building.yaml", sink=sink)

    first, second = sink.calls[0][0], sink.calls[1][0]
    assert first == second


def test_editing_after_save_continues_from_dense_ids(scene, spawner, root):
    level = sparse_level(spawner, root, "L1", keep={0, 6})
    save_map(scene, "a.building.yaml", sink=RecordingSink())

    new_entity = spawner.spawn_vertex(level, Vertex(x=9.0, y=9.0, name="new"))
    assert scene.ids[new_entity] == 2
    spawner.spawn_lane(level, lane(2, 0))

    sink = RecordingSink()
    save_map(scene, "b.building.yaml", sink=sink)
    saved = sink.calls[0][0].levels["L1"]
    assert [v.name for v in saved.vertices] == ["v0", "v6", "new"]
    assert saved.lanes[0].vertices == (2, 0)


def test_failed_write_leaves_scene_untouched(scene, spawner, root, tmp_path):
    level = sparse_level(spawner, root, "L1", keep={2, 5})
    lane_entity = spawner.spawn_lane(level, lane(5, 2))
    target = tmp_path / "map.building.yaml"

    with pytest.raises(WriteError):
        save_map(scene, target, sink=FailingSink())

    assert not target.exists()
    assert scene.vertex_managers[level].ids() == [2, 5]
    assert scene.lanes[lane_entity].vertices == (5, 2)


def test_integrity_failure_writes_nothing(scene, spawner, root, tmp_path):
    level = spawner.spawn_level(root, "L1")
    spawn_vertices(spawner, level, 2)
    spawner.spawn_lane(level, lane(0, 3))
    sink = RecordingSink()

    with pytest.raises(ReferentialIntegrityError):
        save_map(scene, tmp_path / "out.building.yaml", sink=sink)
    assert sink.calls == []


def test_failure_on_later_level_commits_nothing(scene, spawner, root):
    good = sparse_level(spawner, root, "A", keep={1, 2})
    bad = spawner.spawn_level(root, "B")
    spawner.spawn_lane(bad, lane(0, 1))

    with pytest.raises(ReferentialIntegrityError):
        save_map(scene, "x.building.yaml", sink=RecordingSink())
    assert scene.vertex_managers[good].ids() == [1, 2]


def test_save_to_disk_writes_version_2(scene, spawner, root, tmp_path):
    level = sparse_level(spawner, root, "L1", keep={4, 9})
    spawner.spawn_lane(level, lane(9, 4))
    target = tmp_path / "map.building.yaml"

    save_map(scene, target)

    loaded = IOManager.load_map(target)
    assert loaded.version == 2
    assert loaded.name == "test_map"
    assert loaded.crowd_sim == CrowdSim(config={"enable": 0, "update_time_step": 0.1})
    assert loaded.levels["L1"].lanes[0].vertices == (1, 0)
    assert [f for f in os.listdir(tmp_path)] == ["map.building.yaml"]
