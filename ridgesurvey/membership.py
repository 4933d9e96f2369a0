"""District <-> building containment index, built once per session."""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import logging

import numpy as np

from .entities import Building, District
from .geometry import coords_arrays, covers

__all__ = ["MembershipIndex"]

logger = logging.getLogger(__name__)


class MembershipIndex:
    """Forward (district -> ids) and reverse (id -> district) maps.

    Districts are scanned in input order. A building inside several
    overlapping districts is listed under each of them in ``forward``, while
    ``reverse`` records only the first district that contains it. Buildings
    without a centroid appear in neither map.
    """

    __slots__ = ("_forward", "_reverse", "_order")

    def __init__(self, forward: Mapping[str, Sequence[str]], reverse: Mapping[str, str]):
        self._forward: Dict[str, Tuple[str, ...]] = {
            name: tuple(ids) for name, ids in forward.items()
        }
        self._reverse: Dict[str, str] = dict(reverse)
        self._order: Tuple[str, ...] = tuple(self._forward)

    @classmethod
    def build(
        cls, buildings: Iterable[Building], districts: Iterable[District]
    ) -> "MembershipIndex":
        candidates: List[Building] = [b for b in buildings if b.centroid is not None]
        lats, lngs = coords_arrays([b.centroid for b in candidates])

        forward: Dict[str, List[str]] = {}
        reverse: Dict[str, str] = {}
        assignments = 0
        for district in districts:
            if district.name in forward:
                logger.warning("membership.duplicate_district name=%s", district.name)
                continue
            members: List[str] = []
            forward[district.name] = members

            target = district.prepared
            if target is None:
                continue
            # bbox prefilter; np.nonzero keeps input order
            idxs = np.nonzero(district.bounds.mask(lats, lngs))[0]
            for i in idxs:
                building = candidates[int(i)]
                if not covers(target, building.centroid):
                    continue
                members.append(building.id)
                reverse.setdefault(building.id, district.name)
                assignments += 1

        index = cls(forward, reverse)
        logger.info(
            "membership.built districts=%d candidates=%d assignments=%d claimed=%d",
            len(forward),
            len(candidates),
            assignments,
            len(reverse),
        )
        return index

    def __contains__(self, building_id: object) -> bool:
        return building_id in self._reverse

    def __len__(self) -> int:
        return len(self._forward)

    @property
    def forward(self) -> Mapping[str, Tuple[str, ...]]:
        return MappingProxyType(self._forward)

    @property
    def reverse(self) -> Mapping[str, str]:
        return MappingProxyType(self._reverse)

    def district_names(self) -> Tuple[str, ...]:
        return self._order

    def has_district(self, name: str) -> bool:
        return name in self._forward

    def entities_in(self, name: str) -> Tuple[str, ...]:
        """Ids inside ``name`` in building input order; empty for unknown names."""
        return self._forward.get(name, ())

    def region_of(self, building_id: str) -> Optional[str]:
        return self._reverse.get(building_id)

    def all_member_ids(self) -> Tuple[str, ...]:
        """Ordered union of every district's members."""
        seen: Dict[str, None] = {}
        for name in self._order:
            for bid in self._forward[name]:
                seen.setdefault(bid, None)
        return tuple(seen)

    def counts(self) -> Dict[str, int]:
        return {name: len(ids) for name, ids in self._forward.items()}

    def to_df(self):
        import pandas as pd

        claimed: Dict[str, int] = {}
        for name in self._reverse.values():
            claimed[name] = claimed.get(name, 0) + 1
        rows = [
            {"district": name, "members": len(ids), "claimed": claimed.get(name, 0)}
            for name, ids in self._forward.items()
        ]
        return pd.DataFrame(rows, columns=["district", "members", "claimed"])
