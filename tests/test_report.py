"""Tests for README rendering of the variant report."""

import pytest

from variant_scanner.models import ReportEntry
from variant_scanner.report import (
    SECTION_END,
    SECTION_START,
    render_section,
    splice_section,
    update_readme,
)
from variant_scanner.state import PersistenceError

BASE = "https://cards.example.com/Singles"


def _entry(card, collection, versions):
    stem, code = card.rsplit("-", 1)
    return ReportEntry(
        card=card,
        collection=collection,
        variants=[f"{BASE}/Set/{stem}-V{n}-{code}" for n in versions],
    )


def test_render_lists_only_variants_beyond_v1():
    section = render_section([_entry("mewtwo-SVI012", "Scarlet Violet", [1, 3])])
    assert section == (
        "## Variants Found\n"
        "\n### Scarlet Violet\n"
        f"- mewtwo-SVI012: [mewtwo-V3-SVI012]({BASE}/Set/mewtwo-V3-SVI012)\n"
    )


def test_render_groups_by_collection_in_first_seen_order():
    report = [
        _entry("a-PAL001", "Paldea Evolved", [1, 2]),
        _entry("b-SVI002", "Scarlet Violet", [1, 2, 4]),
        _entry("c-PAL003", "Paldea Evolved", [1, 5]),
    ]
    section = render_section(report)
    assert section.index("### Paldea Evolved") < section.index("### Scarlet Violet")
    assert section.index("- a-PAL001") < section.index("- c-PAL003") < section.index("- b-SVI002")
    assert "[b-V2-SVI002]" in section and "[b-V4-SVI002]" in section


def test_render_skips_v1_only_entries():
    assert render_section([_entry("a-SVI001", "Set", [1])]) == "## Variants Found\n"


def test_splice_replaces_existing_block():
    doc = f"# Title\n\n{SECTION_START}\nold stuff\n{SECTION_END}\n\nFooter\n"
    result = splice_section(doc, "## Variants Found\nnew\n")
    assert result == f"# Title\n\n{SECTION_START}\n## Variants Found\nnew\n{SECTION_END}\n\nFooter\n"


def test_splice_appends_when_markers_missing():
    result = splice_section("# Title\n", "## Variants Found\n")
    assert result == f"# Title\n\n{SECTION_START}\n## Variants Found\n{SECTION_END}\n"


def test_update_readme_creates_file(tmp_path):
    readme = tmp_path / "README.md"
    update_readme(str(readme), [_entry("mewtwo-SVI012", "Scarlet Violet", [1, 3])])
    text = readme.read_text()
    assert SECTION_START in text and SECTION_END in text
    assert "mewtwo-V3-SVI012" in text


def test_update_readme_is_stable(tmp_path):
    readme = tmp_path / "README.md"
    readme.write_text("# Cards\n")
    report = [_entry("mewtwo-SVI012", "Scarlet Violet", [1, 3])]
    update_readme(str(readme), report)
    first = readme.read_text()
    update_readme(str(readme), report)
    assert readme.read_text() == first


def test_update_readme_unwritable_raises(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    with pytest.raises(PersistenceError):
        update_readme(str(blocker / "README.md"), [_entry("mewtwo-SVI012", "Set", [1, 3])])
