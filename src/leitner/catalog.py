"""
Catalog loading for CLI hosts.

Reads a JSON file holding either a list of items or {"items": [...]}.
Each item needs an id; the other fields default as in CatalogItem.
"""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger

from .errors import CatalogError
from .models import CatalogItem


def parse_catalog(data: object, source: str = "<data>") -> list[CatalogItem]:
    """
    Build catalog items from decoded JSON.

    Invalid entries are skipped with a warning; duplicate ids keep the
    first occurrence.
    """
    entries = data.get("items") if isinstance(data, dict) else data
    if not isinstance(entries, list):
        raise CatalogError(f"{source} does not contain a list of items")

    items: list[CatalogItem] = []
    seen: set[str] = set()
    for entry in entries:
        if not isinstance(entry, dict):
            logger.warning(f"Skipping non-object catalog entry in {source}")
            continue
        try:
            item = CatalogItem.from_dict(entry)
        except (ValueError, TypeError) as e:
            logger.warning(f"Invalid catalog entry in {source}: {e}")
            continue
        if item.id in seen:
            logger.warning(f"Duplicate catalog id {item.id!r} in {source}, keeping the first")
            continue
        seen.add(item.id)
        items.append(item)

    logger.debug(f"Loaded {len(items)} catalog items from {source}")
    return items


def load_catalog(path: Path | str, topic: str | None = None) -> list[CatalogItem]:
    """
    Load a catalog file.

    Args:
        path: JSON catalog file
        topic: Keep only items of this topic (all if None)

    Returns:
        Catalog items in file order
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogError(f"Failed to load catalog {path}: {e}") from e

    items = parse_catalog(data, source=str(path))
    if topic is not None:
        items = [item for item in items if item.topic == topic]
    return items
