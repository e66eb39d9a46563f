"""
Command line entry point.

Builds a poly map, generates a world on it, optionally reflows it, and prints
a statistics summary.
"""

import argparse
import json
from typing import List, Optional

import structlog

from .config import ReflowConf, Settings, WorldGenConf
from .core.poly_map import MeshConstructionError, PolyMap
from .core.world_map import WorldGenerator
from .logging_config import configure_logging

logger = structlog.get_logger()


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="py-worldgen", description="Generate a procedural world")
    parser.add_argument("--width", type=int, default=settings.default_map_width, help="Map width")
    parser.add_argument("--height", type=int, default=settings.default_map_height, help="Map height")
    parser.add_argument(
        "--spacing", type=float, default=settings.default_min_spacing, help="Minimum distance between cell sites"
    )
    parser.add_argument("--seed", default=str(settings.default_seed), help="Generation seed")
    parser.add_argument("--mesh-seed", default=None, help="Mesh seed, defaults to the generation seed")
    parser.add_argument("--reflows", type=int, default=0, help="Number of reflow passes to apply")
    parser.add_argument("--no-wind", action="store_true", help="Disable wind-driven rain")
    parser.add_argument("--min-river-flux", type=float, default=None, help="Override the river flux cutoff")
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level")
    parser.add_argument("--log-format", choices=["console", "json"], default=settings.log_format)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    settings = Settings()
    args = build_parser(settings).parse_args(argv)
    configure_logging(args.log_level, args.log_format)

    conf = WorldGenConf()
    if args.no_wind:
        conf.hydrology.wind.enabled = False
    if args.min_river_flux is not None:
        conf.hydrology.min_river_flux = args.min_river_flux

    mesh_seed = args.mesh_seed if args.mesh_seed is not None else args.seed
    try:
        mesh = PolyMap.build(args.width, args.height, args.spacing, mesh_seed)
    except MeshConstructionError as e:
        logger.error("Mesh construction failed", error=str(e))
        return 1

    world = WorldGenerator(conf).generate(mesh, args.seed)
    for _ in range(args.reflows):
        world.reflow(ReflowConf())

    print(json.dumps(world.summary(), indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
