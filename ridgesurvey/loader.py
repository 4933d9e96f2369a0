"""Turn already-fetched GeoJSON collections into Building and District records.

This is the one place that reads raw survey property bags; everything past
this module works with typed records.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence
import json
import logging

from .config import Settings
from .entities import Building, District, EntityList, clean_text, canonical_id
from .geometry import LatLng, to_shape

__all__ = [
    "SURVEY_COLUMNS",
    "DEFAULT_DISTRICT_SOURCES",
    "read_feature_collection",
    "building_from_feature",
    "buildings_from_geojson",
    "districts_from_geojson",
]

logger = logging.getLogger(__name__)

# Building attribute -> survey column
SURVEY_COLUMNS: dict[str, str] = {
    "id": "BLDG_ID",
    "house_number": "F_ADD1",
    "pre_dir": "PRE_DIR1",
    "street_name": "ST_NAME1",
    "street_type": "ST_TYPE1",
    "address": "address",
    "survey_address": "CHRS_Address",
    "color": "CHRS_Color",
    "rating": "CHRS_Rating",
    "built_date": "CHRS_Built_Date",
    "architect": "CHRS_Architect",
    "style": "CHRS_Building Style",
    "building_name": "building_name",
    "is_landmark": "individual_landmark",
    "is_contributing": "contributing_ridge_historic_district",
}

CENTROID_X_COLUMN = "Centroid_X"
CENTROID_Y_COLUMN = "Centroid_Y"

DEFAULT_DISTRICT_SOURCES: tuple[str, ...] = ("national", "chicago")


def _features(collection: Any) -> list[Mapping[str, Any]]:
    if collection is None:
        return []
    if isinstance(collection, Mapping):
        if collection.get("type") == "Feature":
            return [collection]
        feats = collection.get("features")
        if feats is None:
            raise ValueError("Expected a GeoJSON FeatureCollection with a 'features' list")
        return [f for f in feats if isinstance(f, Mapping)]
    return [f for f in collection if isinstance(f, Mapping)]


def read_feature_collection(path: str | Path) -> dict:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)
    with p.open("r", encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ValueError(f"{p}: GeoJSON root must be an object")
    logger.info(
        "loader.read path=%s features=%d", p, len(data.get("features") or [])
    )
    return data


def _centroid_hint(props: Mapping[str, Any], bid: str) -> Optional[LatLng]:
    x = props.get(CENTROID_X_COLUMN)
    y = props.get(CENTROID_Y_COLUMN)
    if x is None or y is None:
        return None
    hint = LatLng.coerce((x, y))
    if hint is None:
        logger.debug("loader.centroid_hint_unusable id=%s x=%r y=%r", bid, x, y)
    return hint


def building_from_feature(feature: Mapping[str, Any]) -> Building:
    """Build one record; raises ``ValueError`` when the feature has no id."""

    props = feature.get("properties") or {}
    bid = canonical_id(props.get(SURVEY_COLUMNS["id"]))
    if bid is None:
        raise ValueError("feature has no BLDG_ID")

    kwargs = {
        attr: props.get(column)
        for attr, column in SURVEY_COLUMNS.items()
        if attr != "id"
    }
    building = Building(id=bid, centroid_hint=_centroid_hint(props, bid), **kwargs)

    raw_geometry = feature.get("geometry")
    if raw_geometry is not None:
        try:
            building.footprint = to_shape(raw_geometry)
        except (TypeError, ValueError) as exc:
            logger.warning("loader.geometry_invalid kind=building id=%s error=%s", bid, exc)
    return building


def buildings_from_geojson(collection: Any) -> EntityList:
    out = EntityList()
    seen: set[str] = set()
    skipped = 0
    for index, feature in enumerate(_features(collection)):
        try:
            building = building_from_feature(feature)
        except ValueError as exc:
            skipped += 1
            logger.warning(
                "loader.building_skipped reason=invalid index=%d error=%s", index, exc
            )
            continue
        if building.id in seen:
            skipped += 1
            logger.warning(
                "loader.building_skipped reason=duplicate_id id=%s index=%d",
                building.id,
                index,
            )
            continue
        seen.add(building.id)
        out.append(building)
    logger.info("loader.buildings loaded=%d skipped=%d", len(out), skipped)
    return out


def districts_from_geojson(
    *collections: Any,
    sources: Sequence[str] | None = None,
    settings: Settings | None = None,
) -> EntityList:
    """Merge region collections in order into one District list.

    The first region with a given name wins; later duplicates are logged and
    dropped. A region whose polygon is missing or unreadable is kept with no
    polygon, so it resolves by name but contains nothing.
    """

    settings = settings or Settings()
    if sources is None:
        sources = DEFAULT_DISTRICT_SOURCES[: len(collections)]
        if len(sources) < len(collections):
            sources = tuple(sources) + tuple(
                f"source{i}" for i in range(len(sources), len(collections))
            )
    if len(sources) != len(collections):
        raise ValueError("sources must name every district collection")

    out = EntityList()
    seen: set[str] = set()
    for source, collection in zip(sources, collections):
        for index, feature in enumerate(_features(collection)):
            props = feature.get("properties") or {}
            name = clean_text(props.get("NAME")) or clean_text(props.get("name"))
            if not name:
                logger.warning(
                    "loader.district_skipped reason=missing_name source=%s index=%d",
                    source,
                    index,
                )
                continue
            if name in seen:
                logger.warning(
                    "loader.district_skipped reason=duplicate_name source=%s name=%s",
                    source,
                    name,
                )
                continue
            seen.add(name)

            district = District(
                name=name, color=settings.district_color(name), source=source
            )
            try:
                district.polygon = to_shape(feature.get("geometry"))
            except (TypeError, ValueError) as exc:
                logger.warning(
                    "loader.geometry_invalid kind=district name=%s error=%s", name, exc
                )
            if district.polygon is None:
                logger.warning("loader.district_without_polygon name=%s", name)
            out.append(district)
    logger.info("loader.districts loaded=%d sources=%s", len(out), ",".join(sources))
    return out


def load_files(
    buildings_path: str | Path, district_paths: Iterable[str | Path]
) -> tuple[dict, list[dict]]:
    return (
        read_feature_collection(buildings_path),
        [read_feature_collection(p) for p in district_paths],
    )
