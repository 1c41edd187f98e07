#!/usr/bin/env python3
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import NormalizerConfig, load_config
from .errors import NormalizerError
from .normalizer import normalize_bytes

LOGO_TEXT = """-----------------------------------
     iOS PNG Images Normalizer
-----------------------------------"""


def setup_logging(level: str = 'INFO') -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )


def add_config_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", type=Path, help="YAML config file (defaults to $IOSPNG_CONFIG)")
    parser.add_argument("--check-crc", action="store_true", default=None,
                        help="Reject input whose chunk checksums do not match")
    parser.add_argument("--verify", action="store_true", default=None,
                        help="Decode the result with Pillow before writing it")
    parser.add_argument("--level", type=int, choices=range(-1, 10), metavar="{-1..9}",
                        help="zlib compression level for the new IDAT chunk")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")


def resolve_config(args: argparse.Namespace) -> NormalizerConfig:
    config = load_config(args.config).updated(
        verify_crc=args.check_crc,
        verify_output=args.verify,
        compression_level=args.level,
    )
    if args.verbose:
        config = config.updated(log_level='DEBUG')
    return config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="iospng-normalize",
        description="Convert an iOS-optimized (CgBI) PNG into a standard PNG"
    )
    parser.add_argument("original_png", type=Path, help="CgBI PNG produced by the iOS build")
    parser.add_argument("fixed_png", type=Path, help="Where to write the standard PNG (must not exist)")
    add_config_arguments(parser)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    print(LOGO_TEXT)
    args = build_parser().parse_args(argv)
    logger = logging.getLogger("iospng")

    try:
        config = resolve_config(args)
    except NormalizerError as e:
        setup_logging()
        logger.error(f"Invalid configuration: {e}")
        return 1
    setup_logging(config.log_level)

    if not args.original_png.exists():
        print(f"Source file '{args.original_png}' does not exist.")
        return 1
    if not args.original_png.is_file():
        print(f"Source path '{args.original_png}' is not a file.")
        return 1
    if args.fixed_png.exists():
        print(f"Target file '{args.fixed_png}' already exists.")
        return 1

    try:
        data = args.original_png.read_bytes()
        output = normalize_bytes(data, config)
        with open(args.fixed_png, 'xb') as f:
            f.write(output)
    except NormalizerError as e:
        logger.error(f"Failed to normalize {args.original_png}: {e}")
        return 1
    except OSError as e:
        logger.error(f"I/O error: {e}")
        return 1

    logger.debug(f"Wrote {len(output)} bytes to {args.fixed_png}")
    print("File normalized successfully.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
