"""Card-set file loader.

Each ``*.json`` file in the card-sets directory describes one collection::

    {"set": "Scarlet-Violet", "code": "SVI", "cards": ["1 Pineco", "2 Shuckle"]}
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from variant_scanner.models import CatalogSet

logger = logging.getLogger(__name__)


def load_catalog(directory: str) -> List[CatalogSet]:
    """Load every card-set file in ``directory``, ordered by file name."""
    root = Path(directory)
    if not root.is_dir():
        logger.warning("Card-sets directory %s not found", root)
        return []

    sets: List[CatalogSet] = []
    for path in sorted(root.glob("*.json")):
        catalog_set = _load_set_file(path)
        if catalog_set is not None:
            sets.append(catalog_set)
    logger.info("Loaded %d card sets from %s", len(sets), root)
    return sets


def filter_sets(sets: List[CatalogSet], wanted: Optional[Iterable[str]]) -> List[CatalogSet]:
    """Keep only sets whose name or code is in ``wanted`` (case-insensitive)."""
    if not wanted:
        return sets
    keys = {w.strip().lower() for w in wanted if w.strip()}
    return [s for s in sets if s.name.lower() in keys or s.code.lower() in keys]


def _load_set_file(path: Path) -> Optional[CatalogSet]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        cards = raw["cards"]
        if not isinstance(cards, list):
            raise TypeError("'cards' must be a list")
        return CatalogSet(
            name=str(raw["set"]),
            code=str(raw["code"]),
            lines=[str(line) for line in cards],
        )
    except (OSError, json.JSONDecodeError, KeyError, TypeError) as exc:
        logger.warning("Skipping card-set file %s: %s", path, exc)
        return None
