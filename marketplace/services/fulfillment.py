"""
Fulfillment Engine
Records that some quantity of a listing moved to a counterparty company.

A listing only ever moves active -> completed. Moving less than the full
quantity completes the original row at the moved amount and opens a residual
active listing for the remainder, pointing back through parent_listing_id.
The whole transition (status flip, optional residual, completion record)
commits as one transaction or not at all.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from marketplace.db import unit_of_work
from marketplace.errors import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from marketplace.logging_config import get_logger
from marketplace.models.db_models import DESCRIPTIVE_FIELDS, CompletedListing, Listing, utcnow
from marketplace.models.enums import ListingStatus
from marketplace.repositories import ListingRepository
from marketplace.services.audit import AuditTrail
from marketplace.services.listings import parse_quantity

logger = get_logger(__name__)


@dataclass
class FulfillmentResult:
    completed: Listing
    residual: Optional[Listing]
    record: CompletedListing
    replayed: bool = False


class FulfillmentService:
    """Single entry point for completing (and splitting) listings"""

    def __init__(self, db: Session):
        self.db = db
        self.repository = ListingRepository(db)
        self.audit = AuditTrail(self.repository)

    def complete_listing(
        self,
        listing_id: str,
        acting_user_id: str,
        company_id: str,
        quantity_moved,
        request_id: Optional[str] = None,
    ) -> FulfillmentResult:
        with unit_of_work(self.db):
            if request_id:
                previous = self.repository.completion_by_request_id(request_id)
                if previous is not None:
                    if previous.listing_id != listing_id:
                        raise ConflictError(f"Request id {request_id} was already used for another listing")
                    if previous.created_by != acting_user_id:
                        raise AuthorizationError("Only the listing owner can complete this listing")
                    if (
                        previous.company_id != company_id
                        or previous.quantity_moved != parse_quantity(quantity_moved, "quantity_moved")
                    ):
                        raise ConflictError(f"Request id {request_id} was already used with different details")
                    return self._replay(previous)

            # 1. exists and active (row locked, state re-read)
            listing = self.repository.get_for_update(listing_id)
            if listing is None:
                raise NotFoundError(f"Listing {listing_id} not found")
            if listing.status != ListingStatus.ACTIVE:
                raise InvalidStateError(f"Listing {listing_id} is {listing.status.value}, not active")
            if not acting_user_id or listing.owner_id != acting_user_id:
                raise AuthorizationError("Only the listing owner can complete this listing")

            # 2. counterparty
            if not company_id or self.repository.get_company(company_id) is None:
                raise ValidationError("company not found")

            # 3. / 4. amount, rejected rather than clamped
            amount = parse_quantity(quantity_moved, "quantity_moved")
            original_quantity = listing.quantity
            if amount > original_quantity:
                raise ValidationError(
                    f"quantity_moved {amount} exceeds remaining quantity {original_quantity} {listing.unit.value}"
                )

            completed_at = utcnow()
            residual = None
            if amount < original_quantity:
                residual = Listing(
                    **{field: getattr(listing, field) for field in DESCRIPTIVE_FIELDS},
                    quantity=original_quantity - amount,
                    status=ListingStatus.ACTIVE,
                    parent_listing_id=listing.id,
                )
                self.repository.add(residual)

            listing.status = ListingStatus.COMPLETED
            listing.quantity = amount
            listing.completed_at = completed_at

            record = self.audit.record_completion(
                listing,
                company_id=company_id,
                quantity_moved=amount,
                created_by=acting_user_id,
                completed_at=completed_at,
                request_id=request_id,
            )

            remaining = residual.quantity if residual is not None else Decimal("0")
            if listing.quantity + remaining != original_quantity:
                raise ConflictError("Quantity conservation check failed; nothing was written")

        logger.info(
            "listing_completed",
            extra={
                "listing_id": listing_id,
                "company_id": company_id,
                "quantity_moved": str(amount),
                "original_quantity": str(original_quantity),
                "residual_listing_id": residual.id if residual is not None else None,
            },
        )
        return FulfillmentResult(completed=listing, residual=residual, record=record)

    def _replay(self, record: CompletedListing) -> FulfillmentResult:
        listing = self.repository.get(record.listing_id)
        children = self.repository.children(record.listing_id)
        logger.info(
            "listing_completion_replayed",
            extra={"listing_id": record.listing_id, "request_id": record.request_id},
        )
        return FulfillmentResult(
            completed=listing,
            residual=children[0] if children else None,
            record=record,
            replayed=True,
        )
