"""
Input/Output Manager (YAML)
Handles writing and reading BuildingMap documents as .building.yaml files.
"""
import logging
import os
import stat
import tempfile
from typing import Any, Union
from pathlib import Path

import yaml

from buildingmap.exceptions import WriteError
from buildingmap.model.building_map import BuildingMap

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Per-level record lists that are written one record per line
_RECORD_LISTS = ("vertices", "lanes", "measurements", "walls")


class _FlowList(list):
    pass


class _MapDumper(yaml.SafeDumper):
    def ignore_aliases(self, data: Any) -> bool:
        return True


_MapDumper.add_representer(
    _FlowList,
    lambda dumper, data: dumper.represent_sequence("tag:yaml.org,2002:seq", data, flow_style=True),
)


class IOManager:

    @staticmethod
    def dump_map(document: BuildingMap) -> str:
        """
        Render the document as YAML text. Keys are sorted and every vertex,
        lane, measurement and wall sits on its own line, so saved maps diff well.
        """
        data = document.to_dict()
        for level in data.get("levels", {}).values():
            for key in _RECORD_LISTS:
                level[key] = [_FlowList(record) for record in level.get(key, [])]

        return yaml.dump(
            data,
            Dumper=_MapDumper,
            sort_keys=True,
            default_flow_style=False,
            allow_unicode=True,
        )

    @staticmethod
    def save_map(document: BuildingMap, filepath: PathLike) -> None:
        """
        Write the document to `filepath`. The text goes to a temporary file
        next to the target which then replaces it, so the target is either
        the complete new document or untouched.
        """
        filepath = str(filepath)
        logger.info(f"Writing building map to: {filepath}")

        try:
            text = IOManager.dump_map(document)
        except yaml.YAMLError as e:
            logger.exception(f"Failed to encode building map: {e}")
            raise WriteError(filepath, e) from e

        directory = os.path.dirname(os.path.abspath(filepath))
        temp_path = None
        try:
            fd, temp_path = tempfile.mkstemp(prefix=".", suffix=".tmp", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            # mkstemp creates 0600 files; keep the mode a plain open() would give
            os.chmod(temp_path, IOManager._target_mode(filepath))
            os.replace(temp_path, filepath)
            temp_path = None
        except OSError as e:
            logger.error(f"Failed to write building map to '{filepath}': {e}")
            raise WriteError(filepath, e) from e
        finally:
            if temp_path is not None and os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError as e:
                    logger.warning(f"Could not delete temp file '{temp_path}': {e}")

        logger.debug(f"Wrote {len(text)} characters to {filepath}")

    @staticmethod
    def _target_mode(filepath: str) -> int:
        """Mode of the file being replaced, or 0666 minus the umask for a new file."""
        try:
            return stat.S_IMODE(os.stat(filepath).st_mode)
        except FileNotFoundError:
            umask = os.umask(0)
            os.umask(umask)
            return 0o666 & ~umask

    @staticmethod
    def load_map(filepath: PathLike) -> BuildingMap:
        logger.info(f"Loading building map from: {filepath}")
        with open(filepath, "rb") as f:
            buffer = f.read()

        try:
            building_map = BuildingMap.from_bytes(buffer)
        except (ValueError, TypeError) as e:
            msg = f"File '{filepath}' is not a valid building map: {e}"
            logger.error(msg)
            raise ValueError(msg) from e

        logger.info(f"Loaded map '{building_map.name}' with {len(building_map.levels)} level(s).")
        return building_map
