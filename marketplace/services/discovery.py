"""
Discovery / Ranking Filter
Builds the buyer-facing feed from the active listing set: subscriber distance
cap, material filter, quantity or distance ordering, then an Import/Export
partition. Pure over its inputs; recomputed on every call.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional

from sqlalchemy.orm import Session

from marketplace.config import settings
from marketplace.models.enums import ListingStatus, ListingType, MaterialType, QuantitySort
from marketplace.repositories import ListingRepository
from marketplace.services.geo import Coordinates, coordinates_of, distance_miles


@dataclass(frozen=True)
class DiscoveryFilters:
    material_types: FrozenSet[MaterialType] = frozenset()
    quantity_sort: Optional[QuantitySort] = None
    radius_miles: Optional[int] = None  # subscriber cap; falls back to SUBSCRIBER_RADIUS_MILES


@dataclass
class RankedListing:
    listing: object
    distance_miles: Optional[int] = None


@dataclass
class DiscoveryResult:
    imports: List[RankedListing] = field(default_factory=list)
    exports: List[RankedListing] = field(default_factory=list)
    radius_miles: Optional[int] = None  # cap that was applied, if any

    @property
    def listings(self) -> List[RankedListing]:
        return self.imports + self.exports


def discover(
    listings: Iterable,
    viewer_location: Optional[Coordinates] = None,
    filters: Optional[DiscoveryFilters] = None,
    viewer_is_subscriber: bool = False,
) -> DiscoveryResult:
    """Filter and order listings for a viewer.

    - Subscribers with a known location only see listings within the radius;
      non-subscribers are not distance-capped.
    - A non-empty material set keeps only those materials.
    - Listings without coordinates drop out only while a distance filter or
      distance sort is in effect.
    - An explicit quantity sort takes priority over distance; otherwise the
      feed is nearest-first when the viewer location is known, else input order.
    """
    filters = filters or DiscoveryFilters()
    radius = filters.radius_miles if filters.radius_miles is not None else settings.SUBSCRIBER_RADIUS_MILES
    materials = {MaterialType(m) for m in filters.material_types}

    cap_applies = viewer_is_subscriber and viewer_location is not None
    sort_by_distance = filters.quantity_sort is None and viewer_location is not None
    needs_coordinates = cap_applies or sort_by_distance

    ranked: List[RankedListing] = []
    for listing in listings:
        if listing.status != ListingStatus.ACTIVE:
            continue

        coords = coordinates_of(listing)
        if coords is None and needs_coordinates:
            continue
        distance = None
        if coords is not None and viewer_location is not None:
            distance = distance_miles(viewer_location, coords)

        if cap_applies and distance > radius:
            continue
        if materials and MaterialType(listing.material_type) not in materials:
            continue

        ranked.append(RankedListing(listing=listing, distance_miles=distance))

    # list.sort is stable, so ties keep the incoming created_at order
    if filters.quantity_sort is not None:
        ranked.sort(
            key=lambda r: r.listing.quantity,
            reverse=QuantitySort(filters.quantity_sort) == QuantitySort.DESC,
        )
    elif sort_by_distance:
        ranked.sort(key=lambda r: r.distance_miles)

    result = DiscoveryResult(radius_miles=radius if cap_applies else None)
    for item in ranked:
        if ListingType(item.listing.listing_type) == ListingType.IMPORT:
            result.imports.append(item)
        else:
            result.exports.append(item)
    return result


class DiscoveryService:
    """Runs discover() over the currently active listings"""

    def __init__(self, db: Session):
        self.repository = ListingRepository(db)

    def feed(
        self,
        viewer_location: Optional[Coordinates] = None,
        filters: Optional[DiscoveryFilters] = None,
        viewer_is_subscriber: bool = False,
    ) -> DiscoveryResult:
        return discover(
            self.repository.list_active(),
            viewer_location=viewer_location,
            filters=filters,
            viewer_is_subscriber=viewer_is_subscriber,
        )
