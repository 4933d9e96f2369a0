"""One-time derivation of decade buckets and centroids for loaded buildings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional
import logging

from .decades import decade_for
from .entities import Building, District
from .geometry import LatLng, centroid_of

__all__ = ["PreprocessReport", "preprocess", "preprocess_report"]

logger = logging.getLogger(__name__)


@dataclass
class PreprocessReport:
    total: int = 0
    newly_processed: int = 0
    with_decade: int = 0
    centroid_from_hint: int = 0
    centroid_from_footprint: int = 0
    without_centroid: int = 0

    def as_dict(self) -> dict:
        return {
            "total": self.total,
            "newly_processed": self.newly_processed,
            "with_decade": self.with_decade,
            "centroid_from_hint": self.centroid_from_hint,
            "centroid_from_footprint": self.centroid_from_footprint,
            "without_centroid": self.without_centroid,
        }


def _centroid_for(building: Building) -> Optional[LatLng]:
    if building.centroid_hint is not None:
        return building.centroid_hint
    return centroid_of(building.footprint)


def preprocess(
    buildings: List[Building], districts: Optional[Iterable[District]] = None
) -> List[Building]:
    """Attach ``decade`` and ``centroid`` to every building, once.

    Buildings already processed are left untouched, so calling this twice is
    harmless. District polygons, when given, are prepared for the containment
    tests that follow. Returns the same building list.
    """

    report = PreprocessReport(total=len(buildings))
    for building in buildings:
        if building.is_preprocessed:
            continue
        centroid = _centroid_for(building)
        if centroid is None:
            logger.debug("preprocess.centroid_missing id=%s", building.id)
        building.attach_derived(decade=decade_for(building.built_date), centroid=centroid)
        report.newly_processed += 1

    prepared = sum(1 for d in districts or () if d.prepared is not None)

    _tally(buildings, report)
    logger.info(
        "preprocess.done total=%d new=%d decades=%d hint=%d footprint=%d missing=%d "
        "prepared_districts=%d",
        report.total,
        report.newly_processed,
        report.with_decade,
        report.centroid_from_hint,
        report.centroid_from_footprint,
        report.without_centroid,
        prepared,
    )
    return buildings


def _tally(buildings: Iterable[Building], report: PreprocessReport) -> PreprocessReport:
    for building in buildings:
        if building.decade is not None:
            report.with_decade += 1
        if building.centroid is None:
            report.without_centroid += 1
        elif building.centroid_hint is not None and building.centroid == building.centroid_hint:
            report.centroid_from_hint += 1
        else:
            report.centroid_from_footprint += 1
    return report


def preprocess_report(buildings: List[Building]) -> PreprocessReport:
    """Summarise derived fields without changing anything."""

    return _tally(buildings, PreprocessReport(total=len(buildings)))
