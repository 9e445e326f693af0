from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from PySide6.QtCore import QObject, Signal

from buildingmap.controller.saver import Sink, save_map
from buildingmap.exceptions import BuildingMapError
from buildingmap.model.scene import SceneGraph

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class SaveRequestSlot:
    """
    Holds at most one pending save target. A newer request replaces the
    older one; only the final on-disk state matters.
    """

    def __init__(self) -> None:
        self._pending: Optional[Path] = None

    @property
    def pending(self) -> Optional[Path]:
        return self._pending

    def request(self, path: PathLike) -> None:
        if self._pending is not None:
            logger.debug(f"Save request for {self._pending} superseded by {path}")
        self._pending = Path(path)

    def take(self) -> Optional[Path]:
        path, self._pending = self._pending, None
        return path


class SaveService(QObject):
    """Runs save passes for one scene, one pass per processed request."""
    saved = Signal(str)
    save_failed = Signal(str)

    def __init__(self, scene: SceneGraph, sink: Optional[Sink] = None) -> None:
        super().__init__()
        self.scene = scene
        self.sink = sink
        self.requests = SaveRequestSlot()

    def request_save(self, path: PathLike) -> None:
        self.requests.request(path)

    def process_pending(self) -> Optional[Path]:
        """
        Save to the most recently requested location, if any.
        Must be called when nothing else is editing the scene.
        """
        path = self.requests.take()
        if path is None:
            return None

        try:
            written = save_map(self.scene, path, sink=self.sink)
        except BuildingMapError as e:
            logger.error(f"Cannot save map ({e})")
            self.save_failed.emit(str(e))
            raise
        except Exception as e:
            # an injected sink may raise its own errors
            logger.exception(f"Unexpected error while saving to {path}: {e}")
            self.save_failed.emit(str(e))
            raise

        self.saved.emit(str(written))
        return written
