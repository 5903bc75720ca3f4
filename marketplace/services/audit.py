"""
Tombstone / Audit Trail
Append-only records of deleted listings and completed transactions, plus the
read-side views built on them (history, lineage, material movement totals).
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func

from marketplace.errors import NotFoundError
from marketplace.logging_config import get_logger
from marketplace.models.db_models import Company, CompletedListing, DeletedListing, Listing, utcnow
from marketplace.models.enums import Unit
from marketplace.repositories import ListingRepository

logger = get_logger(__name__)

# Every column of a live listing that the tombstone preserves
SNAPSHOT_FIELDS = (
    "owner_id",
    "site_name",
    "description",
    "material_type",
    "listing_type",
    "quantity",
    "unit",
    "location",
    "latitude",
    "longitude",
    "contact_first_name",
    "contact_email",
    "contact_phone",
    "contact_company",
    "status",
    "parent_listing_id",
    "created_at",
    "completed_at",
)


class AuditTrail:
    """Writes and reads the permanent completion and deletion records"""

    def __init__(self, repository: ListingRepository):
        self.repository = repository

    # -----------------------------
    # Writes (called inside the caller's transaction)
    # -----------------------------
    def tombstone(self, listing: Listing, deleted_by: str, deleted_at: Optional[datetime] = None) -> DeletedListing:
        snapshot = {field: getattr(listing, field) for field in SNAPSHOT_FIELDS}
        tombstone = DeletedListing(
            listing_id=listing.id,
            deleted_at=deleted_at or utcnow(),
            deleted_by=deleted_by,
            **snapshot,
        )
        self.repository.add_tombstone(tombstone)
        logger.info("listing_tombstoned", extra={"listing_id": listing.id, "deleted_by": deleted_by})
        return tombstone

    def record_completion(
        self,
        listing: Listing,
        company_id: str,
        quantity_moved: Decimal,
        created_by: str,
        completed_at: datetime,
        request_id: Optional[str] = None,
    ) -> CompletedListing:
        record = CompletedListing(
            listing_id=listing.id,
            company_id=company_id,
            quantity_moved=quantity_moved,
            unit=listing.unit,
            material_type=listing.material_type,
            created_by=created_by,
            completed_at=completed_at,
            request_id=request_id,
        )
        self.repository.add_completion(record)
        return record

    # -----------------------------
    # Reads
    # -----------------------------
    def completions_for_listing(self, listing_id: str) -> List[CompletedListing]:
        return self.repository.completions_for_listing(listing_id)

    def completions_by_user(self, user_id: str) -> List[CompletedListing]:
        return self.repository.completions_by_user(user_id)

    def deleted_by_user(self, user_id: str) -> List[DeletedListing]:
        return self.repository.tombstones_by_user(user_id)

    def lineage(self, listing_id: str) -> Tuple[List[Listing], List[Listing]]:
        """Return (ancestors root-first, descendants breadth-first) of a listing."""
        listing = self.repository.get(listing_id)
        if listing is None:
            raise NotFoundError(f"Listing {listing_id} not found")

        ancestors: List[Listing] = []
        seen = {listing.id}
        parent_id = listing.parent_listing_id
        while parent_id is not None and parent_id not in seen:
            parent = self.repository.get(parent_id)
            if parent is None:
                break
            ancestors.append(parent)
            seen.add(parent.id)
            parent_id = parent.parent_listing_id
        ancestors.reverse()

        descendants: List[Listing] = []
        frontier = [listing.id]
        while frontier:
            next_frontier = []
            for current_id in frontier:
                for child in self.repository.children(current_id):
                    if child.id in seen:
                        continue
                    seen.add(child.id)
                    descendants.append(child)
                    next_frontier.append(child.id)
            frontier = next_frontier

        return ancestors, descendants

    def material_movement(self, user_id: Optional[str] = None) -> Dict[str, List[dict]]:
        """Total quantity moved per company and material, split by unit."""
        db = self.repository.db
        q = (
            db.query(
                Company.name,
                CompletedListing.material_type,
                CompletedListing.unit,
                func.sum(CompletedListing.quantity_moved),
            )
            .join(Company, Company.id == CompletedListing.company_id)
        )
        if user_id is not None:
            q = q.filter(CompletedListing.created_by == user_id)
        rows = (
            q.group_by(Company.name, CompletedListing.material_type, CompletedListing.unit)
            .order_by(Company.name, CompletedListing.material_type)
            .all()
        )

        out: Dict[str, List[dict]] = {"tons": [], "cubic_yards": []}
        for company_name, material_type, unit, total in rows:
            bucket = "tons" if unit == Unit.TONS else "cubic_yards"
            out[bucket].append(
                {
                    "company_name": company_name,
                    "material_type": material_type,
                    "total_quantity": Decimal(str(total or 0)),
                }
            )
        return out
