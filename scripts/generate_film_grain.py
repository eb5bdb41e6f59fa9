#!/usr/bin/env python3
"""Generate (or check) the film grain std LUT and noise tile bundle.

Reads configs/film_grain.v1.yaml, applies command-line overrides, runs both
generators and writes:
    <output_dir>/<name>_StdLut.bytes
    <output_dir>/<name>_Noise.bytes
    <output_dir>/<name>.meta.yaml
    (optionally) <name>_Noise.png and <name>_StdLut.png previews

Usage:
    # Generate with the default config
    python scripts/generate_film_grain.py

    # Larger grains, finer LUT, with previews
    python scripts/generate_film_grain.py --grain-radius-mean 0.1 --lut-size 512 --preview

    # CI: fail if the committed bundle is stale
    python scripts/generate_film_grain.py --check
"""
import argparse
import sys
from pathlib import Path
from typing import List, Optional

import yaml

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.film_grain import (
    FilmGrainError,
    MissingResourceError,
    check_bundle,
    generate_bundle_from_config,
    save_bundle,
    save_previews,
)
from src.utils import validators
from src.utils.logging_config import get_logger, install_excepthook, log_context, setup_logging

DEFAULT_CONFIG = Path("configs/film_grain.v1.yaml")

logger = get_logger("generate_film_grain")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate the film grain std LUT and correlated noise bundle",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Overrides:
  Every --grain-*/--filter-sigma/--lut-size/--noise-* flag replaces the value
  from the config file. Out-of-range values are floored, not rejected.

Exit codes:
  0  bundle written (or --check found it fresh)
  1  --check found the bundle stale or missing, or a resource error occurred
  2  invalid configuration
""",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Generator config (default: {DEFAULT_CONFIG}; built-in defaults if absent)",
    )
    parser.add_argument("--output-dir", type=Path, help="Override output.directory")
    parser.add_argument("--name", help="Override output.name")

    # Grain model
    parser.add_argument("--grain-radius-mean", type=float, help="Mean grain radius (mu_r)")
    parser.add_argument("--grain-radius-std", type=float, help="Grain radius std (sigma_r)")
    parser.add_argument("--filter-sigma", type=float, help="Gaussian pixel filter sigma")
    parser.add_argument("--lut-size", type=int, help="Number of LUT entries")

    # Noise
    parser.add_argument("--noise-size", type=int, help="Noise tile edge length")
    parser.add_argument("--noise-sigma", type=float, help="Noise correlation sigma")

    # Modes
    parser.add_argument(
        "--preview",
        action="store_true",
        help="Also write PNG previews of both tables",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only verify the existing bundle against the config; write nothing",
    )

    # Logging
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", help="Also log to this file")
    return parser


def load_config(args: argparse.Namespace) -> validators.FilmGrainConfigV1:
    """Load the YAML config (or defaults) and apply CLI overrides."""
    if args.config.exists():
        cfg = validators.load_film_grain_config(args.config)
    elif args.config != DEFAULT_CONFIG:
        raise FileNotFoundError(f"Film grain config not found: {args.config}")
    else:
        cfg = validators.FilmGrainConfigV1()

    data = cfg.model_dump(by_alias=True)
    overrides = {
        ('grain', 'grain_radius_mean'): args.grain_radius_mean,
        ('grain', 'grain_radius_std'): args.grain_radius_std,
        ('grain', 'filter_sigma'): args.filter_sigma,
        ('grain', 'lut_size'): args.lut_size,
        ('noise', 'noise_size'): args.noise_size,
        ('noise', 'noise_sigma'): args.noise_sigma,
        ('output', 'directory'): str(args.output_dir) if args.output_dir else None,
        ('output', 'name'): args.name,
    }
    for (section, key), value in overrides.items():
        if value is not None:
            data[section][key] = value
    if args.preview:
        data['output']['previews'] = True
    if args.verbose:
        data['logging']['log_level'] = "DEBUG"
    if args.log_file:
        data['logging']['log_file'] = args.log_file

    return validators.FilmGrainConfigV1(**data)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint."""
    args = build_parser().parse_args(argv)

    try:
        cfg = load_config(args)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        setup_logging(log_level="INFO")
        logger.error(f"Invalid configuration: {e}")
        return 2

    setup_logging(
        log_level=cfg.logging.log_level,
        log_file=cfg.logging.log_file,
        json=cfg.logging.json_logs,
        color=cfg.logging.color,
        quiet_libs=["PIL"],
        context={"app": "film_grain", "bundle": cfg.output.name},
    )
    install_excepthook()

    out_dir = Path(cfg.output.directory)
    name = cfg.output.name

    if args.check:
        try:
            reasons = check_bundle(out_dir, name, cfg)
        except (MissingResourceError, ValueError, yaml.YAMLError) as e:
            logger.error(f"Cannot check bundle: {e}")
            return 1
        for reason in reasons:
            logger.error(f"Stale: {reason}")
        if reasons:
            return 1
        logger.info(f"Bundle '{name}' in {out_dir} is up to date")
        return 0

    try:
        with log_context(stage="generate"):
            bundle = generate_bundle_from_config(cfg)
        with log_context(stage="save"):
            save_bundle(bundle, out_dir, name)
            if cfg.output.previews:
                save_previews(bundle, out_dir, name)
    except (FilmGrainError, RuntimeError) as e:
        logger.error(f"Failed to write bundle: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
