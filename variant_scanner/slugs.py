"""Card slug normalization and variant URL construction.

A slug looks like ``pikachu-SVI007``: the cleaned card name followed by the
collection code and the zero-padded ordinal.  Variant pages insert a version
token right before that trailing segment (``pikachu-V2-SVI007``).
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional

ORDINAL_WIDTH = 3
MAX_ORDINAL = 10 ** ORDINAL_WIDTH - 1

_ANNOTATION_RE = re.compile(r"\([^)]*\)|\[[^\]]*\]")
_DISALLOWED_RE = re.compile(r"[^\w-]")
_HYPHENS_RE = re.compile(r"-{2,}")

# Trailing "{code}{number}" segment, optionally preceded by a version token.
_TAIL_RE = re.compile(r"-(?:V(?P<version>\d+)-)?(?P<tail>[^-/]*\d{3})$")


class MalformedLineError(ValueError):
    """Raised when a catalog line cannot be turned into a slug."""


def clean_name(name: str) -> str:
    """Strip annotations and punctuation, and normalize hyphens."""
    name = _ANNOTATION_RE.sub("", name)
    name = re.sub(r"\s+", "-", name.strip())
    name = _DISALLOWED_RE.sub("", name)
    name = _HYPHENS_RE.sub("-", name)
    return name.strip("-")


def normalize_line(raw_line: str, collection_code: str, lowercase: bool = True) -> str:
    """Turn ``"<ordinal> <name...>"`` into ``{name}-{code}{ordinal:03d}``."""
    tokens = raw_line.split()
    if not tokens:
        raise MalformedLineError(f"Empty catalog line: {raw_line!r}")

    ordinal, name_tokens = tokens[0], tokens[1:]
    if not (ordinal.isascii() and ordinal.isdigit()):
        raise MalformedLineError(f"Non-numeric ordinal {ordinal!r} in line {raw_line!r}")
    number = int(ordinal)
    if number > MAX_ORDINAL:
        raise MalformedLineError(f"Ordinal {number} does not fit {ORDINAL_WIDTH} digits")

    name = clean_name(" ".join(name_tokens))
    if not name:
        raise MalformedLineError(f"No card name left in line {raw_line!r}")
    if lowercase:
        name = name.lower()

    return f"{name}-{collection_code}{number:0{ORDINAL_WIDTH}d}"


def card_url(base_url: str, collection_name: str, slug: str) -> str:
    """Build the bare (non-versioned) page URL for a card."""
    return f"{base_url.rstrip('/')}/{collection_name}/{slug}"


def variant_url(url: str, version: int) -> str:
    """Return ``url`` addressed at ``version``.

    Works on bare slugs/URLs (the token is inserted) and on versioned ones
    (the existing token is replaced).
    """
    match = _TAIL_RE.search(url)
    if match is None:
        raise ValueError(f"No '{{code}}{{number}}' segment in {url!r}")
    return f"{url[:match.start()]}-V{version}-{match.group('tail')}"


def version_of(url: str) -> Optional[int]:
    """Return the version index encoded in ``url``, or None if unversioned."""
    match = _TAIL_RE.search(url)
    if match is None or match.group("version") is None:
        return None
    return int(match.group("version"))


def strip_version(url: str) -> str:
    """Remove the version token, giving the bare card URL."""
    match = _TAIL_RE.search(url)
    if match is None or match.group("version") is None:
        return url
    return f"{url[:match.start()]}-{match.group('tail')}"


def sort_by_version(urls: Iterable[str]) -> List[str]:
    """Sort URLs by ascending version; unversioned URLs sort first."""
    return sorted(urls, key=lambda u: version_of(u) or 0)


def collection_label(collection_name: str) -> str:
    """Human-readable collection label: ``Scarlet-Violet`` -> ``Scarlet Violet``."""
    return collection_name.replace("-", " ")
