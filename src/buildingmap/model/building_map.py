"""
Building Map Document
=====================
Value types of the persisted building map and their conversion to and from
plain builtins (the shape that gets written as YAML).

Persisted shape:
    name: str
    version: int
    crowd_sim: {...}                      (verbatim)
    levels:
      <level name>:
        vertices:     [[x, y, z, name, {props}], ...]
        lanes:        [[start, end, {props}], ...]
        measurements: [[start, end, {props}], ...]
        walls:        [[start, end, {props}], ...]
        models:       [{name, model_name, x, y, z, yaw, static}, ...]
        drawing:      {filename}
        elevation, flattened_x_offset, flattened_y_offset: float

Inside a document every vertex reference is an index into the vertex list
of the same level.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
import logging
from typing import Any, Dict, List, Optional, Sequence, TypeVar

import numpy as np
import yaml

logger = logging.getLogger(__name__)

PairT = TypeVar("PairT", bound="VertexPair")


def _require_mapping(data: Any, what: str) -> Dict[Any, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"{what} must be a mapping, got {type(data).__name__}.")
    return data


def _require_sequence(data: Any, what: str) -> Sequence[Any]:
    if not isinstance(data, (list, tuple)):
        raise ValueError(f"{what} must be a list, got {type(data).__name__}.")
    return data


def to_builtin(value: Any) -> Any:
    """
    Recursively convert a value into YAML-safe builtins.
    Editing code may leave numpy scalars or arrays in entities (e.g. a dragged
    vertex position), which yaml.safe_dump refuses.
    """
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, np.ndarray):
        return to_builtin(value.tolist())
    if isinstance(value, dict):
        return {k: to_builtin(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_builtin(v) for v in value]
    return value


@dataclass
class Vertex:
    x: float
    y: float
    z: float = 0.0
    name: str = ""
    properties: Dict[str, Any] = field(default_factory=dict)

    def to_list(self) -> List[Any]:
        return [float(self.x), float(self.y), float(self.z), self.name, to_builtin(self.properties)]

    @staticmethod
    def from_list(data: Sequence[Any]) -> Vertex:
        _require_sequence(data, "Vertex")
        if len(data) < 2:
            raise ValueError(f"Vertex needs at least x and y, got {list(data)!r}")
        x, y = data[0], data[1]
        z = data[2] if len(data) > 2 else 0.0
        name = data[3] if len(data) > 3 else ""
        properties = data[4] if len(data) > 4 else {}
        return Vertex(
            x=float(x),
            y=float(y),
            z=float(z),
            name="" if name is None else str(name),
            properties=dict(properties or {}),
        )


@dataclass
class VertexPair:
    """
    An ordered pair of vertex references plus free-form properties.
    In a document the references are vertex-list indices; in a live scene
    they are the level-scoped vertex ids.
    """
    start: int
    end: int
    properties: Dict[str, Any] = field(default_factory=dict)

    @property
    def vertices(self) -> tuple[int, int]:
        return self.start, self.end

    def with_vertices(self: PairT, start: int, end: int) -> PairT:
        """Return a copy pointing at another pair of vertices."""
        return replace(self, start=start, end=end, properties=copy.deepcopy(self.properties))

    def to_list(self) -> List[Any]:
        return [int(self.start), int(self.end), to_builtin(self.properties)]

    @classmethod
    def from_list(cls: type[PairT], data: Sequence[Any]) -> PairT:
        _require_sequence(data, cls.__name__)
        if len(data) < 2:
            raise ValueError(f"{cls.__name__} needs two vertex indices, got {list(data)!r}")
        properties = data[2] if len(data) > 2 else {}
        return cls(start=int(data[0]), end=int(data[1]), properties=dict(properties or {}))


@dataclass
class Lane(VertexPair):
    pass


@dataclass
class Wall(VertexPair):
    pass


@dataclass
class Measurement(VertexPair):
    pass


@dataclass
class Model:
    name: str = ""
    model_name: str = ""
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    yaw: float = 0.0
    static: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "model_name": self.model_name,
            "x": float(self.x),
            "y": float(self.y),
            "z": float(self.z),
            "yaw": float(self.yaw),
            "static": bool(self.static),
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> Model:
        _require_mapping(data, "Model")
        return Model(
            name=str(data.get("name", "")),
            model_name=str(data.get("model_name", "")),
            x=float(data.get("x", 0.0)),
            y=float(data.get("y", 0.0)),
            z=float(data.get("z", 0.0)),
            yaw=float(data.get("yaw", 0.0)),
            static=bool(data.get("static", True)),
        )


@dataclass
class Drawing:
    filename: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"filename": self.filename}

    @staticmethod
    def from_dict(data: Optional[Dict[str, Any]]) -> Drawing:
        if not data:
            return Drawing()
        _require_mapping(data, "Drawing")
        return Drawing(filename=str(data.get("filename", "")))


@dataclass
class CrowdSim:
    """
    Crowd simulation configuration, carried through untouched.
    There is exactly one per map; its inner structure is owned by the
    crowd simulation tooling.
    """
    config: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return to_builtin(self.config)

    @staticmethod
    def from_dict(data: Optional[Dict[str, Any]]) -> CrowdSim:
        return CrowdSim(config=copy.deepcopy(_require_mapping(data or {}, "crowd_sim")))


@dataclass
class Level:
    vertices: List[Vertex] = field(default_factory=list)
    lanes: List[Lane] = field(default_factory=list)
    measurements: List[Measurement] = field(default_factory=list)
    walls: List[Wall] = field(default_factory=list)
    models: List[Model] = field(default_factory=list)
    drawing: Drawing = field(default_factory=Drawing)
    elevation: float = 0.0
    flattened_x_offset: float = 0.0
    flattened_y_offset: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vertices": [v.to_list() for v in self.vertices],
            "lanes": [lane.to_list() for lane in self.lanes],
            "measurements": [m.to_list() for m in self.measurements],
            "walls": [w.to_list() for w in self.walls],
            "models": [m.to_dict() for m in self.models],
            "drawing": self.drawing.to_dict(),
            "elevation": float(self.elevation),
            "flattened_x_offset": float(self.flattened_x_offset),
            "flattened_y_offset": float(self.flattened_y_offset),
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> Level:
        _require_mapping(data, "Level")
        return Level(
            vertices=[Vertex.from_list(v) for v in data.get("vertices") or []],
            lanes=[Lane.from_list(v) for v in data.get("lanes") or []],
            measurements=[Measurement.from_list(v) for v in data.get("measurements") or []],
            walls=[Wall.from_list(v) for v in data.get("walls") or []],
            models=[Model.from_dict(m) for m in data.get("models") or []],
            drawing=Drawing.from_dict(data.get("drawing")),
            elevation=float(data.get("elevation", 0.0)),
            flattened_x_offset=float(data.get("flattened_x_offset", 0.0)),
            flattened_y_offset=float(data.get("flattened_y_offset", 0.0)),
        )


@dataclass
class BuildingMap:
    name: str = ""
    version: Optional[int] = None
    crowd_sim: CrowdSim = field(default_factory=CrowdSim)
    levels: Dict[str, Level] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "crowd_sim": self.crowd_sim.to_dict(),
            "levels": {name: self.levels[name].to_dict() for name in sorted(self.levels)},
        }
        if self.version is not None:
            data["version"] = int(self.version)
        return data

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> BuildingMap:
        if not isinstance(data, dict):
            raise ValueError(f"Building map root must be a mapping, got {type(data).__name__}.")
        levels_data = _require_mapping(data.get("levels") or {}, "levels")
        version = data.get("version")
        return BuildingMap(
            name=str(data.get("name", "")),
            version=int(version) if version is not None else None,
            crowd_sim=CrowdSim.from_dict(data.get("crowd_sim")),
            levels={str(name): Level.from_dict(lvl or {}) for name, lvl in levels_data.items()},
        )

    @staticmethod
    def from_bytes(buffer: bytes) -> BuildingMap:
        try:
            data = yaml.safe_load(buffer)
        except yaml.YAMLError as e:
            raise ValueError(f"Building map is not valid YAML: {e}") from e
        return BuildingMap.from_dict(data or {})
