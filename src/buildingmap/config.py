"""
Configuration & Path Management
===============================
Central registry for file paths and format constants.

Exports:
    FORMAT_VERSION (int): Version tag written into every saved document.
    BUILDING_SUFFIX (str): Conventional file suffix of building documents.
    ASSETS_PATH (str): Absolute path to the assets directory.
    DEMO_MAPS_PATH (str): Absolute path to the bundled demo documents.
"""
import sys
import os
from pathlib import Path

FORMAT_VERSION: int = 2
BUILDING_SUFFIX: str = ".building.yaml"


def get_resource_path(relative_path: str) -> str:
    """
    Get absolute path to resource, works for dev and for PyInstaller.
    """
    if hasattr(sys, '_MEIPASS'):
        base_path: str = getattr(sys, '_MEIPASS')
        return os.path.join(base_path, relative_path)

    # config.py is in src/buildingmap/
    current_file_path: Path = Path(__file__)
    project_root: Path = current_file_path.parent.parent.parent
    return os.path.join(str(project_root), relative_path)


ASSETS_PATH: str = get_resource_path("assets")
DEMO_MAPS_PATH: str = os.path.join(ASSETS_PATH, "demo_maps")
