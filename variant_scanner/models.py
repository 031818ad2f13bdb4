"""Data models for catalog input, probe outcomes, and checkpoint records."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from variant_scanner.slugs import sort_by_version, version_of

STATUS_OK = "ok"
STATUS_NO_VARIANTS = "no-variants"
STATUS_ERROR = "error"
STATUSES = (STATUS_OK, STATUS_NO_VARIANTS, STATUS_ERROR)


@dataclass(frozen=True)
class CatalogEntry:
    """One source row of a card-set file."""

    collection_name: str  # URL path segment, e.g. "Scarlet-Violet"
    collection_code: str  # e.g. "SVI"
    raw_line: str  # e.g. "7 Pikachu"


@dataclass
class CatalogSet:
    """A card-set file: collection name, code, and its raw card lines."""

    name: str
    code: str
    lines: List[str] = field(default_factory=list)

    def entries(self) -> List[CatalogEntry]:
        return [CatalogEntry(self.name, self.code, line) for line in self.lines]


class ProbeResult(enum.Enum):
    """Outcome of a single page existence probe."""

    EXISTS = "exists"
    NOT_FOUND = "not-found"
    INCONCLUSIVE = "inconclusive"  # every attempt hit a transient condition


@dataclass
class VariantSearchResult:
    """Outcome of searching one card for numbered variant pages.

    ``exists`` is True when V1 or the bare card page was confirmed,
    False when neither was, and None when the base check was skipped.
    """

    exists: Optional[bool]
    has_v1: bool = False
    variants: List[str] = field(default_factory=list)
    inconclusive: bool = False


@dataclass
class CardRecord:
    """Persisted classification of a single card, keyed by slug."""

    status: str  # "ok", "no-variants", "error"
    variants: List[str] = field(default_factory=list)
    collection: Optional[str] = None

    def __post_init__(self) -> None:
        if self.status not in STATUSES:
            raise ValueError(f"Unknown record status '{self.status}'")
        if self.status == STATUS_OK and not self.variants:
            raise ValueError("An 'ok' record needs at least the V1 variant")
        if self.status == STATUS_OK:
            if version_of(self.variants[0]) != 1:
                raise ValueError(f"An 'ok' record must start with V1, got {self.variants[0]!r}")
            if self.variants != sort_by_version(self.variants):
                raise ValueError("An 'ok' record lists its variants by ascending version")
        if self.status != STATUS_OK and self.variants:
            raise ValueError(f"A '{self.status}' record cannot carry variants")

    @classmethod
    def ok(cls, variants: List[str], collection: Optional[str] = None) -> "CardRecord":
        return cls(status=STATUS_OK, variants=list(variants), collection=collection)

    @classmethod
    def no_variants(cls, collection: Optional[str] = None) -> "CardRecord":
        return cls(status=STATUS_NO_VARIANTS, collection=collection)

    @classmethod
    def error(cls, collection: Optional[str] = None) -> "CardRecord":
        return cls(status=STATUS_ERROR, collection=collection)

    @property
    def is_error(self) -> bool:
        return self.status == STATUS_ERROR


@dataclass
class ReportEntry:
    """One line of the variant report: a card and every variant found for it."""

    card: str
    collection: str
    variants: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "card": self.card,
            "collection": self.collection,
            "variants": list(self.variants),
        }


class ScanMode(enum.Enum):
    """Operating modes of the scanner."""

    SCAN = "scan"  # skip every card already recorded
    RETRY_ERRORS = "retry-errors"  # reprocess only cards recorded as errors
    RESCAN = "rescan"  # clear the checkpoint, then scan everything
    EXTEND = "extend"  # probe V6..V9 for recorded cards that have V5
    REPORT = "report"  # rebuild the report from the checkpoint, no network
