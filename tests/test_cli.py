import json

import pytest

from ridgesurvey.cli import main
from ridgesurvey.config import CONFIG_ENV_VAR


@pytest.fixture
def config_path(tmp_path, collections, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.chdir(tmp_path)
    buildings, national, chicago = collections
    data = tmp_path / "data"
    data.mkdir()
    for name, payload in (
        ("survey.geojson", buildings),
        ("national.geojson", national),
        ("chicago.geojson", chicago),
    ):
        (data / name).write_text(json.dumps(payload), encoding="utf-8")

    cfg = tmp_path / "ridgesurvey.yaml"
    cfg.write_text(
        "data_sources:\n"
        "  buildings: data/survey.geojson\n"
        "  districts:\n"
        "    national: data/national.geojson\n"
        "    chicago: data/chicago.geojson\n"
        "options:\n"
        "  log_level: WARNING\n",
        encoding="utf-8",
    )
    return cfg


def test_init_writes_template_and_refuses_overwrite(tmp_path, capsys):
    out = tmp_path / "ridgesurvey.yaml"
    main(["init", str(out)])
    assert out.exists()
    assert "Wrote starter config" in capsys.readouterr().out

    with pytest.raises(SystemExit) as exc:
        main(["init", str(out)])
    assert exc.value.code == 2
    assert "Refusing to overwrite" in capsys.readouterr().err


def test_route_prints_one_resolution_per_token(config_path, capsys):
    main(["--config", str(config_path), "route", "district/Elm%20Park", "property/42"])
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 2
    district, prop = (json.loads(line) for line in lines)
    assert district["route"] == "DistrictRoute"
    assert district["display_ids"] == ["42", "44", "43"]
    assert prop["active_context"] == "Elm Park"
    assert prop["selected_id"] == "42"


def test_search_prints_ranked_addresses(config_path, capsys):
    main(["--config", str(config_path), "search", "100 main", "--limit", "2"])
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 2
    assert lines[0].split()[1:] == ["42", "100", "MAIN", "ST"]
    assert lines[1].split()[1:] == ["44", "100", "MAIN", "AVE"]


def test_search_with_short_query_exits_1(config_path, capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--config", str(config_path), "search", "ab"])
    assert exc.value.code == 1
    assert "at least 3 characters" in capsys.readouterr().err


def test_districts_uses_discovered_config(config_path, capsys):
    main(["districts"])
    out = capsys.readouterr().out
    assert "Elm Park" in out
    assert "Longwood Drive" in out


def test_config_without_data_sources_exits_2(tmp_path, monkeypatch, capsys):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    cfg = tmp_path / "bare.yaml"
    cfg.write_text("history:\n  cap: 5\n", encoding="utf-8")
    with pytest.raises(SystemExit) as exc:
        main(["--config", str(cfg), "districts"])
    assert exc.value.code == 2


def test_missing_config_file_exits_2(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--config", str(tmp_path / "missing.yaml"), "route", "home"])
    assert exc.value.code == 2
    assert "ridgesurvey:" in capsys.readouterr().err
