"""Checkpoint store: per-card scan results persisted to JSON after every card."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from variant_scanner.models import STATUSES, CardRecord, ReportEntry, ScanMode

logger = logging.getLogger(__name__)

UNKNOWN_COLLECTION = "Unknown"


class PersistenceError(RuntimeError):
    """Raised when the checkpoint or report file cannot be written."""


class CheckpointStore:
    """Slug -> CardRecord mapping backed by a checkpoint file.

    Every ``save`` rewrites the checkpoint and the derived report file
    wholesale.  Both are written to a temporary file first and moved into
    place, so an interrupted save leaves the previous version intact.
    """

    def __init__(self, checkpoint_file: str, report_file: Optional[str] = None) -> None:
        self._path = Path(checkpoint_file)
        self._report_path = Path(report_file) if report_file else None
        self._records: Optional[Dict[str, CardRecord]] = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def report_path(self) -> Optional[Path]:
        return self._report_path

    @property
    def records(self) -> Dict[str, CardRecord]:
        if self._records is None:
            self._records = self.load()
        return self._records

    def get(self, slug: str) -> Optional[CardRecord]:
        return self.records.get(slug)

    def put(self, slug: str, record: CardRecord) -> None:
        self.records[slug] = record

    def should_skip(self, slug: str, mode: ScanMode = ScanMode.SCAN) -> bool:
        """Whether a card already in the store can be left alone.

        ``RESCAN`` reprocesses everything; ``RETRY_ERRORS`` reprocesses only
        cards whose last run ended in an error.
        """
        record = self.records.get(slug)
        if record is None or mode is ScanMode.RESCAN:
            return False
        if mode is ScanMode.RETRY_ERRORS:
            return not record.is_error
        return True

    def load(self) -> Dict[str, CardRecord]:
        """Read the checkpoint file; a missing or damaged file loads as empty."""
        if not self._path.exists():
            logger.info("No checkpoint at %s, starting fresh", self._path)
            return {}

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            return _deserialize_records(raw)
        except OSError as exc:
            logger.warning("Unreadable checkpoint %s: %s - starting fresh", self._path, exc)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("Corrupt checkpoint %s: %s - starting fresh", self._path, exc)
            self._set_aside()
        return {}

    def _set_aside(self) -> None:
        backup = self._path.with_name(self._path.name + ".corrupt")
        try:
            os.replace(self._path, backup)
        except OSError as exc:
            logger.warning("Could not keep corrupt checkpoint as %s: %s", backup, exc)
            return
        logger.warning("Corrupt checkpoint kept as %s", backup)

    def discard(self, slugs: Iterable[str]) -> int:
        """Forget the given cards; returns how many were recorded."""
        removed = 0
        for slug in slugs:
            if self.records.pop(slug, None) is not None:
                removed += 1
        return removed

    def reset(self) -> None:
        """Forget every record (for a full rescan)."""
        self._records = {}

    def save(self) -> None:
        """Persist the checkpoint and the derived report."""
        _write_json(self._path, _serialize_records(self.records))
        logger.debug("Checkpoint saved to %s", self._path)
        self.save_report()

    def save_report(self) -> List[ReportEntry]:
        """Rewrite the report file from the current records."""
        report = derive_report(self.records)
        if self._report_path is not None:
            _write_json(self._report_path, [entry.to_dict() for entry in report])
        return report

    def delete(self) -> None:
        """Remove the checkpoint and report files."""
        for path in (self._path, self._report_path):
            if path is not None and path.exists():
                path.unlink()
                logger.info("Deleted %s", path)
        self._records = {}

    def summary(self) -> Dict[str, Any]:
        """Return counts per status and per collection."""
        by_status = {status: 0 for status in STATUSES}
        collections: Dict[str, Dict[str, int]] = {}
        for record in self.records.values():
            by_status[record.status] += 1
            name = record.collection or UNKNOWN_COLLECTION
            counts = collections.setdefault(
                name, {"cards": 0, "with_variants": 0, "errors": 0}
            )
            counts["cards"] += 1
            if len(record.variants) > 1:
                counts["with_variants"] += 1
            if record.is_error:
                counts["errors"] += 1
        return {
            "total_cards": len(self.records),
            "statuses": by_status,
            "cards_with_variants": sum(c["with_variants"] for c in collections.values()),
            "collections": collections,
        }


def derive_report(records: Dict[str, CardRecord]) -> List[ReportEntry]:
    """Project the records onto the variant report.

    Only cards with variants beyond V1 are listed, in mapping order.
    """
    return [
        ReportEntry(
            card=slug,
            collection=record.collection or UNKNOWN_COLLECTION,
            variants=list(record.variants),
        )
        for slug, record in records.items()
        if len(record.variants) > 1
    ]


def _write_json(path: Path, data: Any) -> None:
    write_text_atomic(path, json.dumps(data, indent=2, ensure_ascii=False) + "\n")


def write_text_atomic(path: Path, text: str) -> None:
    """Replace ``path`` with ``text`` via a temporary file in the same directory."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
    except OSError as exc:
        raise PersistenceError(f"Cannot write {path}: {exc}") from exc


def _serialize_records(records: Dict[str, CardRecord]) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    for slug, record in records.items():
        entry: Dict[str, Any] = {"status": record.status, "variants": list(record.variants)}
        if record.collection is not None:
            entry["collection"] = record.collection
        data[slug] = entry
    return data


def _deserialize_records(raw: Dict[str, Any]) -> Dict[str, CardRecord]:
    records: Dict[str, CardRecord] = {}
    for slug, entry in raw.items():
        records[slug] = CardRecord(
            status=entry["status"],
            variants=list(entry.get("variants", [])),
            collection=entry.get("collection", entry.get("expansion")),
        )
    return records
