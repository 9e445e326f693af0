"""Command-line interface: load a building map and save it back out."""
import argparse
import logging
import sys
from typing import List, Optional

from buildingmap.app.state import SaveService
from buildingmap.config import BUILDING_SUFFIX
from buildingmap.exceptions import BuildingMapError
from buildingmap.logging_config import setup_logging
from buildingmap.model.io import IOManager
from buildingmap.model.scene import SceneGraph
from buildingmap.model.spawner import Spawner

logger = logging.getLogger("buildingmap.cli")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="buildingmap",
        description="Load a .building.yaml map and write it back with dense vertex indices.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Example:
    python -m buildingmap assets/demo_maps/office.building.yaml out/office.building.yaml

    # Rewrite in place:
    python -m buildingmap office.building.yaml
        """
    )
    parser.add_argument('input', help='Building map to load')
    parser.add_argument('output', nargs='?', default=None,
                        help='Where to save the map (defaults to the input file)')
    parser.add_argument('--debug', action='store_true', help='Verbose logging')
    parser.add_argument('--log-file', default=None, help='Also write the log to this file')
    args = parser.parse_args(argv)

    setup_logging(level=logging.DEBUG if args.debug else logging.INFO, log_file=args.log_file)

    try:
        building_map = IOManager.load_map(args.input)
    except (OSError, ValueError) as e:
        logger.error(f"Cannot load map: {e}")
        return 1

    scene = SceneGraph()
    Spawner(scene).spawn_map(building_map)

    service = SaveService(scene)
    output = args.output or args.input
    if not str(output).endswith(BUILDING_SUFFIX):
        logger.warning(f"Output '{output}' does not end with {BUILDING_SUFFIX}; other tools may not pick it up.")
    service.request_save(output)
    try:
        service.process_pending()
    except BuildingMapError:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
