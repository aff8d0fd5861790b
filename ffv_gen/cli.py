"""Command-line entry point for ffv-gen.

Generates synthetic control objects with their facial features vectors and
bulk-loads them into ClickHouse::

    ffv-gen --config config.yaml
    ffv-gen --config config.yaml --n 10 --batch-size 3 --dry-run
"""

from __future__ import annotations

import argparse
import sys
import time

from ffv_gen.config import IDENTITY_MODES, LOG_FORMATS, FFVGenConfig
from ffv_gen.exceptions import FFVGenError
from ffv_gen.generators import BiometricGenerator
from ffv_gen.logging import get_logger, setup_logging
from ffv_gen.runner import open_sink, run

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="ffv-gen",
        description="Generate synthetic biometric records and bulk-load them into ClickHouse.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file (default: built-in defaults + environment)",
    )
    parser.add_argument(
        "--n",
        type=int,
        default=None,
        help="Total number of (control object, FFV) pairs to generate",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Pairs per insert transaction",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed (default: current time in seconds)",
    )
    parser.add_argument(
        "--identity-mode",
        choices=IDENTITY_MODES,
        default=None,
        help="placeholder: '-' identity fields; faker: realistic identities",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Log output format",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print batches to stdout instead of writing to ClickHouse",
    )
    parser.add_argument(
        "--max-records",
        type=int,
        default=3,
        help="Records printed per batch in --dry-run mode",
    )
    return parser


def load_config(args: argparse.Namespace) -> FFVGenConfig:
    """Resolve configuration: YAML file, then environment, then CLI flags."""
    config = FFVGenConfig.from_yaml(args.config) if args.config else FFVGenConfig()
    config = FFVGenConfig.from_env(config)

    if args.n is not None:
        config.generator.n = args.n
    if args.batch_size is not None:
        config.generator.in_iter = args.batch_size
    if args.seed is not None:
        config.generator.seed = args.seed
    if args.identity_mode is not None:
        config.generator.identity_mode = args.identity_mode
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format

    return config.validate()


def _format_error(exc: BaseException) -> str:
    """Join an exception with its chained causes: ``outer: inner: root``."""
    parts = []
    current: BaseException | None = exc
    while current is not None:
        parts.append(str(current) or type(current).__name__)
        current = current.__cause__
    return ": ".join(parts)


def main(argv: list[str] | None = None) -> int:
    """Run the loader. Returns the process exit code."""
    started_at = time.monotonic()
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
    except FFVGenError as exc:
        print(f"unable to read configuration: {_format_error(exc)}", file=sys.stderr)
        return 1

    setup_logging(config.log_level, config.log_format, debug=config.storage.debug)

    gen_cfg = config.generator
    generator = BiometricGenerator(
        seed=gen_cfg.seed,
        locale=gen_cfg.locale,
        identity_mode=gen_cfg.identity_mode,
    )
    logger.info("Random seed: %d", generator.seed)

    try:
        with open_sink(config, dry_run=args.dry_run, max_records=args.max_records) as sink:
            summary = run(
                sink,
                generator,
                total=gen_cfg.n,
                batch_size=gen_cfg.in_iter,
                started_at=started_at,
            )
    except FFVGenError as exc:
        print(_format_error(exc), file=sys.stderr)
        return 1

    print(summary.describe())
    return 0


if __name__ == "__main__":
    sys.exit(main())
