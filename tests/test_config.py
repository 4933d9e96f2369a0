from pathlib import Path
import sys

import pytest

from ridgesurvey.config import (
    CONFIG_ENV_VAR,
    NO_COLOR,
    Settings,
    discover_config,
    find_config_file,
    load_config,
    string_hash,
    write_template,
)


def test_defaults():
    s = Settings()
    assert s.history_cap == 300
    assert s.debounce_seconds == pytest.approx(0.2)
    assert (s.suggestion_limit, s.lookup_limit) == (5, 10)
    assert s.color_order[0] == "Red"
    assert s.buildings_path is None


def test_yaml_config_with_relative_paths(tmp_path):
    cfg = tmp_path / "ridgesurvey.yaml"
    cfg.write_text(
        """
history:
  cap: 50
follow_map:
  debounce_seconds: 0.5
search:
  min_length: 4
survey:
  color_order: [Blue, Red]
districts:
  colors:
    Elm Park: "#123456"
data_sources:
  buildings: data/buildings.geojson
  districts:
    national: /abs/national.geojson
    chicago: chicago.geojson
options:
  log_level: debug
""",
        encoding="utf-8",
    )
    s = load_config(cfg)
    assert s.history_cap == 50
    assert s.debounce_seconds == 0.5
    assert s.min_search_length == 4
    assert s.color_order == ("Blue", "Red")
    assert s.district_colors["Elm Park"] == "#123456"
    # defaults survive a partial override
    assert s.district_colors["Longwood Drive"] == "#6A4C93"
    assert s.buildings_path == str(tmp_path.resolve() / "data" / "buildings.geojson")
    assert s.district_paths["national"] == str(Path("/abs/national.geojson"))
    assert s.district_paths["chicago"] == str(tmp_path.resolve() / "chicago.geojson")
    assert list(s.district_paths) == ["national", "chicago"]
    assert s.log_level == "DEBUG"
    assert s.source_path == cfg


def test_toml_config(tmp_path):
    cfg = tmp_path / "ridgesurvey.toml"
    cfg.write_text(
        """
[history]
cap = 10

[search]
suggestion_limit = 3
max_edit_distance = 4

[data_sources]
buildings = "b.geojson"

[data_sources.districts]
national = "n.geojson"
""",
        encoding="utf-8",
    )
    s = load_config(cfg)
    assert s.history_cap == 10
    assert s.suggestion_limit == 3
    assert s.max_edit_distance == 4
    assert s.buildings_path.endswith("b.geojson")
    assert list(s.district_paths) == ["national"]


@pytest.mark.parametrize(
    "raw",
    [
        {"history": {"cap": 0}},
        {"history": {"cap": True}},
        {"history": []},
        {"follow_map": {"debounce_seconds": -1}},
        {"search": {"lookup_limit": "ten"}},
        {"search": {"min_length": 2, "min_suggestion_length": 3}},
        {"survey": {"color_order": ["Red", ""]}},
        {"districts": {"colors": {"Elm Park": 5}}},
        {"districts": {"street_groups": "Ridge Historic District"}},
        {"districts": {"street_group_min": -1}},
        {"data_sources": {"buildings": 5}},
        {"data_sources": {"districts": ["a.geojson"]}},
        {"options": {"log_level": "LOUD"}},
    ],
)
def test_invalid_values_raise(raw):
    with pytest.raises(ValueError):
        Settings.from_dict(raw)


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_discovery_prefers_env_var(tmp_path, monkeypatch):
    cfg = tmp_path / "elsewhere.yaml"
    cfg.write_text("history:\n  cap: 7\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(cfg))
    assert find_config_file(tmp_path) == cfg
    assert discover_config().history_cap == 7


def test_discovery_walks_parents(tmp_path, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    (tmp_path / "ridgesurvey.yml").write_text("history:\n  cap: 9\n", encoding="utf-8")
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    assert find_config_file(nested) == tmp_path.resolve() / "ridgesurvey.yml"

    monkeypatch.chdir(nested)
    assert discover_config().history_cap == 9


def test_explicit_path_wins(tmp_path, monkeypatch):
    env_cfg = tmp_path / "env.yaml"
    env_cfg.write_text("history:\n  cap: 7\n", encoding="utf-8")
    explicit = tmp_path / "explicit.yaml"
    explicit.write_text("history:\n  cap: 8\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(env_cfg))
    assert discover_config(explicit).history_cap == 8


def test_write_template_round_trips(tmp_path):
    out = write_template(tmp_path / "ridgesurvey.yaml")
    s = load_config(out)
    assert s == Settings(
        buildings_path=str(tmp_path.resolve() / "data" / "survey.geojson"),
        district_paths={
            "national": str(tmp_path.resolve() / "data" / "national_districts.geojson"),
            "chicago": str(tmp_path.resolve() / "data" / "chicago_districts.geojson"),
        },
    )
    with pytest.raises(FileExistsError):
        write_template(out)


def test_district_colors():
    s = Settings()
    assert s.district_color("Ridge Historic District") == "#E63946"
    assert s.district_color(None) == NO_COLOR
    fallback = s.district_color("Elm Park")
    assert fallback in s.fallback_palette
    assert s.district_color("Elm Park") == fallback


def test_string_hash_matches_32bit_rolling_hash():
    assert string_hash("") == 0
    assert string_hash("a") == 97
    assert string_hash("ab") == 3105
    # wraps to a signed 32-bit value rather than growing without bound
    long_hash = string_hash("Beverly/Morgan Park Railroad Station" * 4)
    assert -(2**31) <= long_hash < 2**31


def test_color_rank():
    s = Settings()
    assert s.color_rank("Red") == 0
    assert s.color_rank("Teal") == len(s.color_order)


def test_to_dict_round_trip():
    s = Settings(history_cap=12, district_paths={"national": "/x.geojson"})
    again = Settings.from_dict(s.to_dict())
    assert again == s


def test_street_group_settings(tmp_path):
    assert Settings().street_group_districts == (
        "Ridge Historic District",
        "Brainerd Bungalow Historic District",
    )
    assert Settings().street_group_min == 20

    cfg = tmp_path / "ridgesurvey.toml"
    cfg.write_text(
        """
[districts]
street_groups = ["Elm Park"]
street_group_min = 0
""",
        encoding="utf-8",
    )
    s = load_config(cfg)
    assert s.street_group_districts == ("Elm Park",)
    assert s.street_group_min == 0


def test_yaml_needs_pyyaml_but_toml_does_not(tmp_path, monkeypatch):
    monkeypatch.setitem(sys.modules, "yaml", None)
    yaml_cfg = tmp_path / "ridgesurvey.yaml"
    yaml_cfg.write_text("history:\n  cap: 5\n", encoding="utf-8")
    with pytest.raises(RuntimeError, match="ridgesurvey\\[yaml\\]"):
        load_config(yaml_cfg)

    toml_cfg = tmp_path / "ridgesurvey.toml"
    toml_cfg.write_text("[history]\ncap = 5\n", encoding="utf-8")
    assert load_config(toml_cfg).history_cap == 5
