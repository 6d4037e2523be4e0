"""Raw document source: the downloaded open-data XML exports.

The download job drops exports either directly into the source directory or
into one sub-folder per download date (``downloads/2024-05-01/*.xml``).  Each
export wraps its entries in one of several container/record tag pairs
depending on the dataset, see :data:`RECORD_PATHS`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from bs4 import BeautifulSoup, Tag

from .errors import SourceUnavailableError
from .models import SkipReason, SkipRecord
from .raw import RawInitiative

LOGGER = logging.getLogger(__name__)

# (container, record) tag pairs, in lookup order.  Matched case-insensitively.
RECORD_PATHS: list[tuple[str, str]] = [
    ("results", "result"),
    ("iniciativas", "iniciativa"),
    ("proyectos", "proyecto"),
    ("proposiciones", "proposicion"),
    ("iniciativaslegislativas", "iniciativalegislativa"),
    ("documentos", "documento"),
    ("leyes", "ley"),
]


@dataclass
class SourceDocument:
    path: Path
    entries: list[RawInitiative] = field(default_factory=list)
    skip: SkipRecord | None = None  # set when the whole file was dropped


def iter_source_files(source_dir: Path) -> list[Path]:
    """List the XML exports under *source_dir*, sorted for a stable batch order.

    Files directly in the directory win; only when there are none are the
    dated sub-folders scanned (one level deep).

    Raises:
        SourceUnavailableError: the directory is missing or cannot be listed.
    """
    source_dir = Path(source_dir)
    if not source_dir.is_dir():
        raise SourceUnavailableError(f"source directory not found: {source_dir}")
    try:
        direct = sorted(p for p in source_dir.iterdir() if _is_xml(p))
        if direct:
            return direct
        nested: list[Path] = []
        for sub in sorted(p for p in source_dir.iterdir() if p.is_dir()):
            nested.extend(sorted(p for p in sub.iterdir() if _is_xml(p)))
    except OSError as exc:
        raise SourceUnavailableError(f"cannot list {source_dir}: {exc}") from exc
    return nested


def _is_xml(path: Path) -> bool:
    return path.is_file() and path.suffix.lower() == ".xml"


def _find_tag(root: BeautifulSoup | Tag, name: str) -> Tag | None:
    return root.find(lambda t: isinstance(t, Tag) and t.name.lower() == name)


def _record_tags(soup: BeautifulSoup) -> list[Tag]:
    for container_name, record_name in RECORD_PATHS:
        container = _find_tag(soup, container_name)
        if container is None:
            continue
        records = [
            child
            for child in container.find_all(True, recursive=False)
            if child.name.lower() == record_name
        ]
        if records:
            return records
    return []


def _record_fields(record: Tag) -> dict[str, str]:
    bag: dict[str, str] = {}
    for child in record.find_all(True, recursive=False):
        # get_text keeps the newlines the narrative fields rely on
        bag[child.name.upper()] = child.get_text()
    return bag


def parse_document(path: Path, *, max_file_mb: int = 100) -> SourceDocument:
    """Parse one export into raw entries.  Never raises for bad files."""
    path = Path(path)
    try:
        size = path.stat().st_size
        if size > max_file_mb * 1024 * 1024:
            LOGGER.warning(
                "Skipping %s: %.1f MB exceeds %d MB limit", path, size / 1024 / 1024, max_file_mb
            )
            return SourceDocument(
                path,
                skip=SkipRecord(SkipReason.FILE_TOO_LARGE, str(path), f"{size} bytes"),
            )
        data = path.read_bytes()
    except OSError as exc:
        LOGGER.warning("Skipping %s: %s", path, exc)
        return SourceDocument(path, skip=SkipRecord(SkipReason.UNREADABLE_FILE, str(path), str(exc)))

    # bs4 sniffs the encoding from the XML declaration (exports are UTF-8 or ISO-8859-1)
    soup = BeautifulSoup(data, "xml")
    if soup.find(True) is None:
        LOGGER.warning("Skipping %s: no XML content", path)
        return SourceDocument(
            path,
            skip=SkipRecord(SkipReason.UNPARSEABLE_DOCUMENT, str(path), "no root element"),
        )

    records = _record_tags(soup)
    if not records:
        LOGGER.info("No initiative records in %s", path)
    entries = [RawInitiative.from_fields(_record_fields(r)) for r in records]
    LOGGER.debug("Parsed %d entries from %s", len(entries), path)
    return SourceDocument(path, entries=entries)


def load_documents(source_dir: Path, *, max_file_mb: int = 100) -> list[SourceDocument]:
    """Parse every export under *source_dir*, in batch order."""
    files = iter_source_files(source_dir)
    LOGGER.info("Found %d XML exports under %s", len(files), source_dir)
    return [parse_document(p, max_file_mb=max_file_mb) for p in files]
