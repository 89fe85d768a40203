"""
Usage log file access.

Discovers line-delimited JSON logs and yields their parsed lines.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Iterator, List, Union

logger = logging.getLogger(__name__)

LOG_EXTENSION = ".jsonl"


def default_data_path() -> Path:
    """Directory the CLI tool writes its usage logs to."""
    return Path.home() / ".claude" / "projects"


def find_log_files(data_path: Union[str, Path], extension: str = LOG_EXTENSION) -> List[Path]:
    """Find every log file under ``data_path``, following symlinks.

    Args:
        data_path: Root directory to scan
        extension: File suffix to match

    Returns:
        Matching file paths sorted for deterministic processing; empty
        when the directory does not exist
    """
    root = Path(data_path)
    if not root.exists():
        logger.warning("Data path does not exist: %s", root)
        return []

    files: List[Path] = []
    visited = set()
    for dirpath, dirnames, filenames in os.walk(root, followlinks=True):
        # Symlink cycles would otherwise be walked forever.
        real = os.path.realpath(dirpath)
        if real in visited:
            dirnames[:] = []
            continue
        visited.add(real)
        for name in filenames:
            path = Path(dirpath) / name
            if path.suffix == extension and path.is_file():
                files.append(path)
    return sorted(files)


def iter_json_lines(file_path: Path) -> Iterator[Any]:
    """Yield the parsed JSON value of each non-blank line.

    Malformed lines are skipped and logged at debug level. A file that
    cannot be opened is logged as a warning and yields nothing.
    """
    try:
        with open(file_path, "r", encoding="utf-8", errors="replace") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    yield json.loads(line)
                except json.JSONDecodeError as e:
                    logger.debug("Skipping malformed line %d in %s: %s", line_number, file_path, e)
    except OSError as e:
        logger.warning("Failed to read file %s: %s", file_path, e)
