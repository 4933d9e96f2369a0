# ridgesurvey/__init__.py
from importlib.metadata import PackageNotFoundError, version
import sys
import warnings

_MINIMUM_PYTHON = (3, 11)
_REQUIRED_DEPENDENCIES = {
    "pandas": "2.1",
    "numpy": "1.26",
    "shapely": "2.0",
    "rapidfuzz": "3.0",
}

_OPTIONAL_DEPENDENCIES = {
    "PyYAML": "6.0",
}

if sys.version_info < _MINIMUM_PYTHON:
    raise RuntimeError(f"Python >= {'.'.join(map(str, _MINIMUM_PYTHON))} is required.")


def _gte(installed: str, required: str) -> bool:
    from packaging import version as pv

    return pv.parse(installed) >= pv.parse(required)


_required_issues: list[str] = []
for pkg, minv in _REQUIRED_DEPENDENCIES.items():
    try:
        v = version(pkg)
    except PackageNotFoundError:
        _required_issues.append(f"{pkg}>={minv} (not installed)")
        continue
    if not _gte(v, minv):
        _required_issues.append(f"{pkg}>={minv} (found {v})")

if _required_issues:
    raise ImportError(
        "ridgesurvey requires the following dependencies: "
        + ", ".join(_required_issues)
    ) from None


_optional_issues: list[str] = []
for pkg, minv in _OPTIONAL_DEPENDENCIES.items():
    try:
        v = version(pkg)
    except PackageNotFoundError:
        _optional_issues.append(f"{pkg}>={minv} (not installed)")
        continue
    if not _gte(v, minv):
        _optional_issues.append(f"{pkg}>={minv} (found {v})")

if _optional_issues:
    warnings.warn(
        "Optional dependencies are missing or out of date: "
        + ", ".join(_optional_issues)
        + ". YAML config files cannot be read; TOML still works."
        + " Install the extra with: pip install ridgesurvey[yaml]",
        RuntimeWarning,
        stacklevel=2,
    )


try:
    __version__ = version("ridgesurvey")
except PackageNotFoundError:
    __version__ = "0.0.0"

from .config import Settings, discover_config, load_config
from .engine import ShowAttempt, SurveyEngine
from .entities import Building, District
from .geometry import Bounds, LatLng
from .membership import MembershipIndex
from .router import ALL_DISTRICTS, AppState, Resolution, ViewStateRouter
from .routes import parse_route, serialize_route
from .search import normalize_address, search

__all__ = [
    "SurveyEngine",
    "ShowAttempt",
    "Settings",
    "load_config",
    "discover_config",
    "Building",
    "District",
    "Bounds",
    "LatLng",
    "MembershipIndex",
    "ViewStateRouter",
    "AppState",
    "Resolution",
    "ALL_DISTRICTS",
    "parse_route",
    "serialize_route",
    "normalize_address",
    "search",
    "__version__",
]
