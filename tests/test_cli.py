"""Tests for the command-line interface."""

import pytest
import yaml

from variant_scanner import cli
from variant_scanner.models import CardRecord, ScanMode
from variant_scanner.state import CheckpointStore

V1 = "https://cards.example.com/Singles/Set/mewtwo-V1-SVI012"
V3 = "https://cards.example.com/Singles/Set/mewtwo-V3-SVI012"


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({
        "site": {"base_url": "https://cards.example.com/Singles/"},
        "paths": {
            "card_sets_dir": str(tmp_path / "card-sets"),
            "checkpoint_file": str(tmp_path / "checked-cards.json"),
            "variants_file": str(tmp_path / "variants-found.json"),
            "readme_file": str(tmp_path / "README.md"),
        },
    }))
    store = CheckpointStore(str(tmp_path / "checked-cards.json"))
    store.put("mewtwo-SVI012", CardRecord.ok([V1, V3], "Scarlet Violet"))
    store.put("pikachu-SVI007", CardRecord.error("Scarlet Violet"))
    store.save()
    return path


@pytest.mark.parametrize("answer, mode", [
    ("1", ScanMode.SCAN),
    ("2", ScanMode.RETRY_ERRORS),
    ("3", ScanMode.EXTEND),
    ("4", ScanMode.REPORT),
    (" 9 ", ScanMode.RESCAN),
    ("5", None),
    ("", None),
])
def test_choose_mode(answer, mode):
    assert cli.choose_mode(answer) is mode


def test_parser_sets_modes():
    parser = cli._build_parser()
    args = parser.parse_args(["retry-errors", "--sets", "SVI,PAL"])
    assert args.mode is ScanMode.RETRY_ERRORS
    assert args.sets == "SVI,PAL"
    assert parser.parse_args(["extend"]).mode is ScanMode.EXTEND


def test_status_command(config_file, capsys):
    cli.main(["-c", str(config_file), "status"])
    out = capsys.readouterr().out
    assert "Scarlet Violet" in out
    assert "Cards checked" in out


def test_report_command_writes_readme(config_file, tmp_path):
    cli.main(["-c", str(config_file), "report"])
    readme = (tmp_path / "README.md").read_text()
    assert "mewtwo-V3-SVI012" in readme
    assert (tmp_path / "variants-found.json").exists()


def test_menu_invalid_choice_exits(config_file, monkeypatch):
    monkeypatch.setattr(cli.console, "input", lambda prompt="": "7")
    with pytest.raises(SystemExit) as exc:
        cli.main(["-c", str(config_file)])
    assert exc.value.code == 1


def test_menu_dispatches_report(config_file, monkeypatch, tmp_path):
    monkeypatch.setattr(cli.console, "input", lambda prompt="": "4")
    cli.main(["-c", str(config_file), "menu"])
    assert "mewtwo-V3-SVI012" in (tmp_path / "README.md").read_text()


def test_bad_config_exits(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({"site": {"base_url": "not-a-url"}}))
    with pytest.raises(SystemExit) as exc:
        cli.main(["-c", str(path), "status"])
    assert exc.value.code == 1


def test_clean_command(config_file, tmp_path):
    cli.main(["-c", str(config_file), "report"])
    cli.main(["-c", str(config_file), "clean"])
    assert not (tmp_path / "checked-cards.json").exists()
    assert not (tmp_path / "variants-found.json").exists()


def test_report_command_unwritable_readme_exits(config_file, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    config = yaml.safe_load(config_file.read_text())
    config["paths"]["readme_file"] = str(blocker / "README.md")
    config_file.write_text(yaml.dump(config))
    with pytest.raises(SystemExit) as exc:
        cli.main(["-c", str(config_file), "report"])
    assert exc.value.code == 1
