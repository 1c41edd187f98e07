#!/usr/bin/env python3
import argparse
import logging
import os
import sys
import tempfile
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .chunks import is_cgbi
from .cli import add_config_arguments, resolve_config, setup_logging
from .config import NormalizerConfig
from .errors import NormalizerError
from .normalizer import normalize_bytes


class BatchConverter:
    """Normalize every iOS-optimized PNG found below a directory."""

    def __init__(self, root: Path, config: Optional[NormalizerConfig] = None,
                 output_dir: Optional[Path] = None, pattern: str = '*.png'):
        self.root = Path(root).resolve()
        self.config = config or NormalizerConfig()
        self.output_dir = Path(output_dir).resolve() if output_dir else None
        self.pattern = pattern
        self.logger = logging.getLogger(self.__class__.__name__)

    def find_candidates(self) -> List[Path]:
        return sorted(p for p in self.root.rglob(self.pattern) if p.is_file())

    def target_path(self, path: Path) -> Path:
        if self.output_dir is None:
            return path
        return self.output_dir / path.relative_to(self.root)

    def convert_file(self, path: Path) -> Dict[str, Any]:
        try:
            data = path.read_bytes()
        except OSError as e:
            self.logger.error(f"Error reading {path}: {e}")
            return {"status": "failed", "message": str(e)}

        if not is_cgbi(data):
            self.logger.debug(f"Skipping standard PNG: {path}")
            return {"status": "skipped", "message": "Not an iOS-optimized PNG"}

        try:
            output = normalize_bytes(data, self.config)
            target = self.target_path(path)
            target.parent.mkdir(parents=True, exist_ok=True)
            self._write_atomic(target, output)
        except (NormalizerError, OSError) as e:
            self.logger.error(f"Error converting {path}: {e}")
            return {"status": "failed", "message": str(e)}

        self.logger.info(f"Converted iOS-optimized PNG: {path}")
        return {"status": "converted", "message": str(target)}

    def _write_atomic(self, target: Path, data: bytes) -> None:
        """Replace ``target`` only once ``data`` is fully on disk next to it."""
        fd, temp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
            os.chmod(temp_name, target.stat().st_mode & 0o777 if target.exists() else 0o644)
            os.replace(temp_name, target)
        except OSError:
            if os.path.exists(temp_name):
                os.remove(temp_name)
            raise

    def run(self, workers: Optional[int] = None) -> Dict[str, List[Tuple[Path, str]]]:
        results: Dict[str, List[Tuple[Path, str]]] = {"converted": [], "skipped": [], "failed": []}
        candidates = self.find_candidates()
        self.logger.info(f"Scanning {len(candidates)} file(s) under {self.root}")

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(self.convert_file, path): path for path in candidates}
            for future in futures:
                path = futures[future]
                result = future.result()
                results[result["status"]].append((path, result["message"]))
        return results


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="iospng-batch",
        description="Convert every iOS-optimized PNG found below a directory"
    )
    parser.add_argument("root", type=Path, help="Directory to scan recursively")
    parser.add_argument("--name", default="*.png", help="Glob for file names to consider (default: *.png)")
    parser.add_argument("--output-dir", type=Path,
                        help="Write converted files here, mirroring the tree (default: convert in place)")
    parser.add_argument("--workers", type=int, default=None, help="Number of worker threads")
    add_config_arguments(parser)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger = logging.getLogger("iospng")

    try:
        config = resolve_config(args)
    except NormalizerError as e:
        setup_logging()
        logger.error(f"Invalid configuration: {e}")
        return 1
    setup_logging(config.log_level)

    if not args.root.is_dir():
        print(f"Error: {args.root} directory not found")
        return 1
    if args.workers is not None and args.workers < 1:
        print("Error: --workers must be a positive integer")
        return 1

    converter = BatchConverter(args.root, config, args.output_dir, args.name)
    results = converter.run(args.workers)

    if not results["converted"]:
        print("No iOS-optimized PNGs found")
    logger.info(
        f"Converted {len(results['converted'])}, skipped {len(results['skipped'])}, "
        f"failed {len(results['failed'])}"
    )
    for path, reason in results["failed"]:
        logger.error(f" - {os.path.relpath(path, converter.root)}: {reason}")

    return 0 if not results["failed"] else 1


if __name__ == "__main__":
    sys.exit(main())
