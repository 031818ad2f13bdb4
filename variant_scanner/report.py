"""Markdown rendering of the variant report, spliced into a README."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List

from variant_scanner.models import ReportEntry
from variant_scanner.state import PersistenceError, write_text_atomic

logger = logging.getLogger(__name__)

SECTION_START = "<!-- VARIANTS_START -->"
SECTION_END = "<!-- VARIANTS_END -->"
SECTION_TITLE = "## Variants Found"

_SECTION_RE = re.compile(re.escape(SECTION_START) + r".*?" + re.escape(SECTION_END), re.DOTALL)


def render_section(report: List[ReportEntry]) -> str:
    """Render the report grouped by collection, in first-seen order.

    V1 is implied by every listed card and is left out of the links.
    """
    grouped: Dict[str, List[str]] = {}
    for entry in report:
        extra = entry.variants[1:]
        if not extra:
            continue
        links = ", ".join(f"[{_label(url)}]({url})" for url in extra)
        grouped.setdefault(entry.collection, []).append(f"- {entry.card}: {links}")

    section = f"{SECTION_TITLE}\n"
    for collection, lines in grouped.items():
        section += f"\n### {collection}\n"
        section += "\n".join(lines) + "\n"
    return section


def splice_section(document: str, section: str) -> str:
    """Replace the marked block in ``document``, or append one."""
    block = f"{SECTION_START}\n{section}{SECTION_END}"
    if _SECTION_RE.search(document):
        return _SECTION_RE.sub(lambda _: block, document, count=1)
    return f"{document}\n{block}\n"


def update_readme(path: str, report: List[ReportEntry]) -> Path:
    """Write the rendered report into the README at ``path``."""
    readme = Path(path)
    try:
        document = readme.read_text(encoding="utf-8") if readme.exists() else ""
    except OSError as exc:
        raise PersistenceError(f"Cannot read {readme}: {exc}") from exc
    write_text_atomic(readme, splice_section(document, render_section(report)))
    logger.info("README %s updated with %d cards", readme, len(report))
    return readme


def _label(url: str) -> str:
    return url.rstrip("/").rsplit("/", 1)[-1]
