"""
config.py

Settings loader + validator for ridgesurvey sessions.

Features:
- YAML/TOML config, detected by suffix, validated into a single Settings object
- Relative data paths are rewritten against the config file's directory
- Discovery order: explicit path, $RIDGESURVEY_CONFIG, then ridgesurvey.(yaml|yml|toml)
  in the working directory or any parent; built-in defaults otherwise
- District display colors with a deterministic fallback palette
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple
import logging
import os

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "RIDGESURVEY_CONFIG"
CONFIG_FILENAMES: Tuple[str, ...] = (
    "ridgesurvey.yaml",
    "ridgesurvey.yml",
    "ridgesurvey.toml",
)

DEFAULT_COLOR_ORDER: Tuple[str, ...] = (
    "Red",
    "Orange",
    "Yellow",
    "Yellow/Green",
    "Green",
    "Purple",
    "Blue",
)

DEFAULT_DISTRICT_COLORS: Dict[str, str] = {
    "Ridge Historic District": "#E63946",
    "Brainerd Bungalow Historic District": "#F4A261",
    "Walter Burley Griffin Place": "#457B9D",
    "Longwood Drive": "#6A4C93",
    "Beverly/Morgan Park Railroad Station": "#4CB944",
}

DEFAULT_FALLBACK_PALETTE: Tuple[str, ...] = (
    "#E63946",
    "#457B9D",
    "#F4A261",
    "#6A4C93",
    "#4CB944",
)

DEFAULT_STREET_GROUP_DISTRICTS: Tuple[str, ...] = (
    "Ridge Historic District",
    "Brainerd Bungalow Historic District",
)

NO_COLOR = "#CCCCCC"

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")

# ------------------------------
# Loading utilities (YAML/TOML)
# ------------------------------


def _load_yaml(text: str) -> dict:
    try:
        import yaml  # PyYAML
    except ImportError as e:
        raise RuntimeError(
            "PyYAML is required to read .yaml/.yml configs. pip install ridgesurvey[yaml]"
        ) from e
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError("YAML root must be a mapping (dict).")
    return data


def _load_toml(text: str) -> dict:
    import tomllib

    data = tomllib.loads(text)
    if not isinstance(data, dict):
        raise ValueError("TOML root must be a mapping (dict).")
    return data


def _detect_and_load(path: Path) -> dict:
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix in (".yaml", ".yml"):
        return _load_yaml(text)
    if suffix == ".toml":
        return _load_toml(text)
    # Last resort: try YAML first, then TOML
    try:
        return _load_yaml(text)
    except Exception:
        return _load_toml(text)


# ------------------------------
# Helpers
# ------------------------------


def _expand_path(value: str) -> str:
    """Expand ~ and $ENV in a path-like string, but leave URLs untouched."""
    if isinstance(value, str) and ("://" not in value):
        return os.path.expandvars(os.path.expanduser(value))
    return value


def _rewrite_relative_paths(raw: dict, base_dir: Path) -> dict:
    """Rewrite relative file paths in data_sources to be relative to base_dir."""

    def rewrite_value(val: Any) -> Any:
        if not isinstance(val, str) or "://" in val:
            return val
        path = Path(_expand_path(val.strip()))
        if path.is_absolute():
            return str(path)
        return str(base_dir / path)

    section = raw.get("data_sources")
    if not isinstance(section, dict):
        return raw

    rewritten: dict = {}
    for key, value in section.items():
        if isinstance(value, dict):
            rewritten[key] = {k: rewrite_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            rewritten[key] = [rewrite_value(v) for v in value]
        else:
            rewritten[key] = rewrite_value(value)
    updated = dict(raw)
    updated["data_sources"] = rewritten
    return updated


def _section(d: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = d.get(name, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"[{name}] must be a mapping.")
    return value


def _positive_int(section: str, key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"[{section}] {key} must be a positive integer (got {value!r}).")
    return value


def _non_negative_int(section: str, key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"[{section}] {key} must be a non-negative integer (got {value!r}).")
    return value


def _non_negative_float(section: str, key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ValueError(f"[{section}] {key} must be a non-negative number (got {value!r}).")
    return float(value)


def _str_list(section: str, key: str, value: Any) -> Tuple[str, ...]:
    if not isinstance(value, (list, tuple)) or not all(
        isinstance(v, str) and v.strip() for v in value
    ):
        raise ValueError(f"[{section}] {key} must be a list of non-empty strings.")
    return tuple(v.strip() for v in value)


def _utf16_units(text: str) -> Iterator[int]:
    data = text.encode("utf-16-le", "surrogatepass")
    for i in range(0, len(data), 2):
        yield data[i] | (data[i + 1] << 8)


def _to_int32(n: int) -> int:
    n &= 0xFFFFFFFF
    return n - 0x100000000 if n & 0x80000000 else n


def string_hash(text: str) -> int:
    """Rolling ``h * 31 + c`` hash over UTF-16 code units with 32-bit shifts.

    Kept bit-compatible with the palette lookup used by the map front end so
    a district gets the same fallback color on both sides.
    """

    h = 0
    for unit in _utf16_units(text):
        h = _to_int32(unit + (_to_int32(h << 5) - h))
    return h


# ---------- Settings root ----------


@dataclass
class Settings:
    history_cap: int = 300
    debounce_seconds: float = 0.2
    suggestion_limit: int = 5
    lookup_limit: int = 10
    min_search_length: int = 3
    min_suggestion_length: int = 2
    max_edit_distance: int = 10
    color_order: Tuple[str, ...] = DEFAULT_COLOR_ORDER
    district_colors: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_DISTRICT_COLORS)
    )
    fallback_palette: Tuple[str, ...] = DEFAULT_FALLBACK_PALETTE
    # district panels listing more than street_group_min buildings get street jumps
    street_group_districts: Tuple[str, ...] = DEFAULT_STREET_GROUP_DISTRICTS
    street_group_min: int = 20
    buildings_path: Optional[str] = None
    district_paths: Dict[str, str] = field(default_factory=dict)
    log_level: str = "INFO"
    source_path: Optional[Path] = field(default=None, compare=False)

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Settings":
        if not isinstance(d, dict):
            raise ValueError("Config must be a mapping at the top level.")

        history = _section(d, "history")
        follow = _section(d, "follow_map")
        search = _section(d, "search")
        survey = _section(d, "survey")
        districts = _section(d, "districts")
        data_sources = _section(d, "data_sources")
        options = _section(d, "options")

        defaults = Settings()
        kwargs: Dict[str, Any] = {}

        if "cap" in history:
            kwargs["history_cap"] = _positive_int("history", "cap", history["cap"])
        if "debounce_seconds" in follow:
            kwargs["debounce_seconds"] = _non_negative_float(
                "follow_map", "debounce_seconds", follow["debounce_seconds"]
            )

        for key, attr in (
            ("suggestion_limit", "suggestion_limit"),
            ("lookup_limit", "lookup_limit"),
            ("min_length", "min_search_length"),
            ("min_suggestion_length", "min_suggestion_length"),
            ("max_edit_distance", "max_edit_distance"),
        ):
            if key in search:
                kwargs[attr] = _positive_int("search", key, search[key])

        if "color_order" in survey:
            kwargs["color_order"] = _str_list("survey", "color_order", survey["color_order"])

        colors = districts.get("colors", {})
        if not isinstance(colors, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in colors.items()
        ):
            raise ValueError("[districts] colors must map district names to color strings.")
        if colors:
            merged = dict(defaults.district_colors)
            merged.update(colors)
            kwargs["district_colors"] = merged
        if "fallback_palette" in districts:
            kwargs["fallback_palette"] = _str_list(
                "districts", "fallback_palette", districts["fallback_palette"]
            )
        if "street_groups" in districts:
            kwargs["street_group_districts"] = _str_list(
                "districts", "street_groups", districts["street_groups"]
            )
        if "street_group_min" in districts:
            kwargs["street_group_min"] = _non_negative_int(
                "districts", "street_group_min", districts["street_group_min"]
            )

        buildings = data_sources.get("buildings")
        if buildings is not None and not isinstance(buildings, str):
            raise ValueError("[data_sources] buildings must be a path string.")
        kwargs["buildings_path"] = buildings
        district_paths = data_sources.get("districts", {})
        if not isinstance(district_paths, dict) or not all(
            isinstance(v, str) for v in district_paths.values()
        ):
            raise ValueError(
                "[data_sources] districts must map a source name to a path string."
            )
        kwargs["district_paths"] = dict(district_paths)

        level = str(options.get("log_level", defaults.log_level)).upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"[options] log_level must be one of {', '.join(_LOG_LEVELS)}.")
        kwargs["log_level"] = level

        settings = Settings(**kwargs)
        if settings.min_suggestion_length > settings.min_search_length:
            raise ValueError(
                "[search] min_suggestion_length cannot exceed min_length."
            )
        return settings

    def district_color(self, name: Optional[str]) -> str:
        if not name:
            return NO_COLOR
        if name in self.district_colors:
            return self.district_colors[name]
        palette = self.fallback_palette or DEFAULT_FALLBACK_PALETTE
        return palette[abs(string_hash(name)) % len(palette)]

    def color_rank(self, color: str) -> int:
        try:
            return self.color_order.index(color)
        except ValueError:
            return len(self.color_order)

    def to_dict(self) -> dict:
        return {
            "history": {"cap": self.history_cap},
            "follow_map": {"debounce_seconds": self.debounce_seconds},
            "search": {
                "suggestion_limit": self.suggestion_limit,
                "lookup_limit": self.lookup_limit,
                "min_length": self.min_search_length,
                "min_suggestion_length": self.min_suggestion_length,
                "max_edit_distance": self.max_edit_distance,
            },
            "survey": {"color_order": list(self.color_order)},
            "districts": {
                "colors": dict(self.district_colors),
                "fallback_palette": list(self.fallback_palette),
                "street_groups": list(self.street_group_districts),
                "street_group_min": self.street_group_min,
            },
            "data_sources": {
                "buildings": self.buildings_path,
                "districts": dict(self.district_paths),
            },
            "options": {"log_level": self.log_level},
        }


def load_config(path: str | Path) -> Settings:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)
    raw = _detect_and_load(p)
    raw = _rewrite_relative_paths(raw, p.resolve().parent)
    settings = Settings.from_dict(raw)
    settings.source_path = p
    return settings


def _iter_parents(start: Path) -> Iterator[Path]:
    cur = start.resolve()
    yield cur
    yield from cur.parents


def find_config_file(start: str | Path | None = None) -> Optional[Path]:
    env = os.environ.get(CONFIG_ENV_VAR)
    if env:
        p = Path(_expand_path(env))
        if p.exists():
            logger.info("config.discovered source=env path=%s", p)
            return p
        logger.warning("config.unavailable source=env path=%s", p)

    for folder in _iter_parents(Path(start) if start else Path.cwd()):
        for name in CONFIG_FILENAMES:
            candidate = folder / name
            if candidate.is_file():
                logger.info("config.discovered source=search path=%s", candidate)
                return candidate
    return None


def discover_config(explicit: str | Path | None = None) -> Settings:
    """Resolve settings the way the CLI and ``SurveyEngine.from_config`` do."""

    if explicit is not None:
        return load_config(explicit)
    found = find_config_file()
    if found is None:
        logger.debug("config.defaults reason=no_config_file")
        return Settings()
    return load_config(found)


_TEMPLATE_YAML = """\
# ridgesurvey configuration (YAML)
# Every key is optional; omitted keys fall back to the built-in defaults.

history:
  cap: 300                  # routes kept in the navigation history

follow_map:
  debounce_seconds: 0.2     # quiet period before a follow-map refresh

search:
  suggestion_limit: 5       # inline suggestion list
  lookup_limit: 10          # broader lookup
  min_length: 3             # full search route
  min_suggestion_length: 2
  max_edit_distance: 10     # fuzzy candidates at or past this distance are dropped

survey:
  color_order: [Red, Orange, Yellow, Yellow/Green, Green, Purple, Blue]

districts:
  colors:
    Ridge Historic District: "#E63946"
    Brainerd Bungalow Historic District: "#F4A261"
    Walter Burley Griffin Place: "#457B9D"
    Longwood Drive: "#6A4C93"
    Beverly/Morgan Park Railroad Station: "#4CB944"
  fallback_palette: ["#E63946", "#457B9D", "#F4A261", "#6A4C93", "#4CB944"]
  street_groups: [Ridge Historic District, Brainerd Bungalow Historic District]
  street_group_min: 20      # group a district list by street above this many buildings

# Paths are resolved relative to this file. District sources are merged in
# order; the first district claims a building that two of them contain.
data_sources:
  buildings: data/survey.geojson
  districts:
    national: data/national_districts.geojson
    chicago: data/chicago_districts.geojson

options:
  log_level: INFO
"""


def write_template(out_path: str | Path) -> Path:
    p = Path(out_path)
    if p.exists():
        raise FileExistsError(p)
    p.write_text(_TEMPLATE_YAML, encoding="utf-8")
    return p
