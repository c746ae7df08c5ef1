"""File scanner — grep theme and extension sources for tracker keywords."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Iterator
from pathlib import Path

from notrack.core.base import DetectedTracker, DetectionMethod, TrackerDefinition
from notrack.core.config import Settings
from notrack.scanners.matching import extract_id, find_keyword

logger = logging.getLogger(__name__)

SCAN_EXTENSIONS = frozenset({".php", ".js", ".html", ".twig", ".liquid"})
EXCLUDED_DIRS = frozenset({"node_modules", "vendor"})

MAX_FILES = 50_000
MAX_FILE_SIZE = 5 * 1024 * 1024  # 5 MB


def scan_roots(settings: Settings) -> list[Path]:
    """Theme, child theme and extension directories, minus our own plugin directory."""
    candidates: list[Path] = []
    if settings.theme_dir is not None:
        candidates.append(settings.theme_dir)
    if settings.child_theme_dir is not None and settings.child_theme_dir != settings.theme_dir:
        candidates.append(settings.child_theme_dir)
    candidates.extend(settings.extension_dirs)

    own = settings.plugin_dir.resolve() if settings.plugin_dir is not None else None
    roots: list[Path] = []
    seen: set[Path] = set()
    for candidate in candidates:
        resolved = candidate.resolve()
        if resolved == own or resolved in seen:
            continue
        seen.add(resolved)
        roots.append(candidate)
    return roots


def _log_walk_error(error: OSError) -> None:
    logger.debug("Skipping unreadable directory %s: %s", error.filename, error.strerror)


def _iter_source_files(root: Path) -> Iterator[Path]:
    """Walk ``root`` depth-first in sorted order, never entering excluded directories."""
    for dirpath, dirnames, filenames in os.walk(root, onerror=_log_walk_error):
        dirnames[:] = sorted(d for d in dirnames if d not in EXCLUDED_DIRS)
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            if path.suffix.lower() in SCAN_EXTENSIONS:
                yield path


def _read_source(path: Path) -> str | None:
    try:
        if path.stat().st_size > MAX_FILE_SIZE:
            logger.debug("Skipping oversized file %s", path)
            return None
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.debug("Skipping unreadable file %s: %s", path, e)
        return None


def scan_file_content(
    path: Path, content: str, catalog: dict[str, TrackerDefinition]
) -> list[DetectedTracker]:
    """Match one file's content against every catalog entry."""
    detected: list[DetectedTracker] = []
    lowered = content.lower()
    for service_id, definition in catalog.items():
        if find_keyword(definition, lowered) is None:
            continue
        detected.append(
            DetectedTracker(
                service_id=service_id,
                detection_method=DetectionMethod.FILE,
                evidence={"file": str(path)},
                extracted_id=extract_id(definition, content),
            )
        )
    return detected


def scan_files(
    roots: Iterable[Path], catalog: dict[str, TrackerDefinition]
) -> list[DetectedTracker]:
    """Scan every allowed source file under ``roots``. Never raises on I/O errors."""
    detected: list[DetectedTracker] = []
    files_scanned = 0

    for root in roots:
        if not root.is_dir():
            logger.warning("Scan root %s is not a directory, skipping", root)
            continue
        for path in _iter_source_files(root):
            if files_scanned >= MAX_FILES:
                logger.warning("File scan stopped after %d files", MAX_FILES)
                return detected
            content = _read_source(path)
            if content is None:
                continue
            files_scanned += 1
            detected.extend(scan_file_content(path, content, catalog))

    logger.info("File scan: %d files, %d detections", files_scanned, len(detected))
    return detected
