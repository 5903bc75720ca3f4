"""
Persistence access for listings, companies and their audit records.
Wraps a SQLAlchemy session; transaction boundaries belong to the caller.
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from marketplace.models.db_models import Company, CompletedListing, DeletedListing, Listing
from marketplace.models.enums import ListingStatus


class ListingRepository:
    """Query helpers over the listings, companies and audit tables"""

    def __init__(self, db: Session):
        self.db = db

    # -----------------------------
    # Listings
    # -----------------------------
    def get(self, listing_id: str) -> Optional[Listing]:
        return self.db.query(Listing).filter(Listing.id == listing_id).first()

    def get_for_update(self, listing_id: str) -> Optional[Listing]:
        """Fresh read of a listing row, locked until the surrounding transaction ends."""
        return (
            self.db.query(Listing)
            .filter(Listing.id == listing_id)
            .populate_existing()
            .with_for_update()
            .first()
        )

    def add(self, listing: Listing) -> Listing:
        self.db.add(listing)
        return listing

    def delete(self, listing: Listing) -> None:
        self.db.delete(listing)

    def list_active(self) -> List[Listing]:
        return (
            self.db.query(Listing)
            .filter(Listing.status == ListingStatus.ACTIVE)
            .order_by(Listing.created_at.desc())
            .all()
        )

    def list_by_owner(self, owner_id: str, status: Optional[ListingStatus] = None) -> List[Listing]:
        q = self.db.query(Listing).filter(Listing.owner_id == owner_id)
        if status is not None:
            q = q.filter(Listing.status == status)
        return q.order_by(Listing.created_at.desc()).all()

    def children(self, listing_id: str) -> List[Listing]:
        return self.db.query(Listing).filter(Listing.parent_listing_id == listing_id).all()

    # -----------------------------
    # Companies
    # -----------------------------
    def get_company(self, company_id: str) -> Optional[Company]:
        return self.db.query(Company).filter(Company.id == company_id).first()

    def list_companies(self) -> List[Company]:
        return self.db.query(Company).order_by(Company.name).all()

    # -----------------------------
    # Audit records
    # -----------------------------
    def add_completion(self, record: CompletedListing) -> CompletedListing:
        self.db.add(record)
        return record

    def add_tombstone(self, tombstone: DeletedListing) -> DeletedListing:
        self.db.add(tombstone)
        return tombstone

    def completion_by_request_id(self, request_id: str) -> Optional[CompletedListing]:
        return self.db.query(CompletedListing).filter(CompletedListing.request_id == request_id).first()

    def completions_for_listing(self, listing_id: str) -> List[CompletedListing]:
        return (
            self.db.query(CompletedListing)
            .filter(CompletedListing.listing_id == listing_id)
            .order_by(CompletedListing.completed_at.desc())
            .all()
        )

    def completions_by_user(self, user_id: Optional[str] = None) -> List[CompletedListing]:
        q = self.db.query(CompletedListing)
        if user_id is not None:
            q = q.filter(CompletedListing.created_by == user_id)
        return q.order_by(CompletedListing.completed_at.desc()).all()

    def tombstones_by_user(self, user_id: str) -> List[DeletedListing]:
        return (
            self.db.query(DeletedListing)
            .filter(DeletedListing.deleted_by == user_id)
            .order_by(DeletedListing.deleted_at.desc())
            .all()
        )
