"""
Playbook Catalog

Immutable playbook records and the loader that reads them from JSON.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlaybookRecord:
    """A named troubleshooting procedure for one category."""

    name: str
    keywords: Tuple[str, ...] = ()
    questions: Tuple[str, ...] = ()
    steps: Tuple[str, ...] = ()
    commands: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: MappingProxyType({}), hash=False)

    @classmethod
    def from_dict(cls, raw: Any) -> "PlaybookRecord":
        """Build a record, degrading missing or mistyped fields to empty values."""
        if not isinstance(raw, dict):
            raw = {}

        commands = raw.get("commands")
        by_device: Dict[str, Tuple[str, ...]] = {}
        if isinstance(commands, dict):
            for device, items in commands.items():
                by_device[str(device)] = _as_strings(items)

        return cls(
            name=str(raw.get("name") or ""),
            keywords=_as_strings(raw.get("keywords")),
            questions=_as_strings(raw.get("questions")),
            steps=_as_strings(raw.get("steps")),
            commands=MappingProxyType(by_device),
        )

    def commands_for(self, device: str) -> Tuple[str, ...]:
        return self.commands.get(device, ()) if isinstance(device, str) else ()


PlaybookCatalog = Mapping[str, Tuple[PlaybookRecord, ...]]


def _as_strings(items: Any) -> Tuple[str, ...]:
    if not isinstance(items, (list, tuple)):
        return ()
    return tuple(str(item) for item in items if item is not None)


def parse_catalog(document: Any) -> PlaybookCatalog:
    """
    Convert a decoded JSON document into a read-only catalog.

    Args:
        document: Mapping of category name to a list of playbook objects

    Returns:
        Read-only mapping of category to a tuple of PlaybookRecord
    """
    catalog: Dict[str, Tuple[PlaybookRecord, ...]] = {}
    if not isinstance(document, dict):
        return MappingProxyType(catalog)

    for category, records in document.items():
        if not isinstance(records, list):
            logger.warning(f"Playbook category '{category}' is not a list; treating it as empty")
            records = []
        catalog[str(category)] = tuple(PlaybookRecord.from_dict(raw) for raw in records)

    return MappingProxyType(catalog)


def load_catalog(path: Path) -> PlaybookCatalog:
    """
    Load the playbook catalog from a JSON file.

    Args:
        path: Location of the catalog document

    Returns:
        Read-only catalog (empty if the file does not exist)

    Raises:
        ValueError: If the file is not valid JSON
    """
    path = Path(path)
    if not path.exists():
        logger.warning(f"Playbook catalog not found at {path}; starting with an empty catalog")
        return MappingProxyType({})

    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Playbook catalog {path} is not valid JSON: {e}")

    catalog = parse_catalog(document)
    total = sum(len(records) for records in catalog.values())
    logger.info(f"Loaded {total} playbooks in {len(catalog)} categories from {path}")
    return catalog
