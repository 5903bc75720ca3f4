"""
Listing Store
Create, edit, list and soft-delete listings. Status, quantity and lineage are
never writable here: those belong to the fulfillment engine and the
tombstone path.
"""

import math
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from marketplace.db import unit_of_work
from marketplace.errors import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from marketplace.logging_config import get_logger
from marketplace.models.db_models import DeletedListing, Listing
from marketplace.models.enums import ListingStatus, ListingType, MaterialType, Unit, unit_for
from marketplace.repositories import ListingRepository
from marketplace.services.audit import AuditTrail
from marketplace.services.contact import format_phone, is_valid_us_phone

logger = get_logger(__name__)

EDITABLE_FIELDS = {
    "site_name",
    "description",
    "material_type",
    "listing_type",
    "location",
    "latitude",
    "longitude",
}

PROTECTED_FIELDS = {
    "id",
    "owner_id",
    "status",
    "quantity",
    "unit",
    "parent_listing_id",
    "created_at",
    "completed_at",
    "version",
}

REQUIRED_TEXT_FIELDS = ("site_name", "location")

# Largest value a Numeric(12, 2) column holds
MAX_QUANTITY = Decimal("9999999999.99")


def parse_quantity(value: Any, field: str = "quantity") -> Decimal:
    """Coerce to Decimal and require a positive amount with at most two decimal places."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if amount <= 0:
        raise ValidationError("quantity must be positive")
    if amount > MAX_QUANTITY:
        raise ValidationError(f"{field} must be at most {MAX_QUANTITY}")
    try:
        too_precise = amount != amount.quantize(Decimal("0.01"))
    except InvalidOperation:
        too_precise = True
    if too_precise:
        raise ValidationError(f"{field} supports at most two decimal places")
    return amount


def _parse_enum(enum_cls, value: Any, field: str):
    if value is None:
        raise ValidationError(f"{field} is required")
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{field} must be one of: {allowed}")


def _parse_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    return value.strip()


def _parse_coordinates(latitude: Any, longitude: Any):
    if latitude is None and longitude is None:
        return None, None
    if latitude is None or longitude is None:
        raise ValidationError("latitude and longitude must be provided together")
    try:
        lat, lon = float(latitude), float(longitude)
    except (TypeError, ValueError):
        raise ValidationError("latitude and longitude must be numbers")
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise ValidationError("latitude and longitude must be numbers")
    if not -90 <= lat <= 90:
        raise ValidationError("latitude must be between -90 and 90")
    if not -180 <= lon <= 180:
        raise ValidationError("longitude must be between -180 and 180")
    return lat, lon


def _contact_fields(contact: Any) -> Dict[str, Optional[str]]:
    if contact is None:
        contact = {}
    elif not isinstance(contact, Mapping):
        contact = contact.model_dump()

    phone = contact.get("phone")
    if phone and is_valid_us_phone(phone):
        phone = format_phone(phone)

    return {
        "contact_first_name": contact.get("first_name"),
        "contact_email": contact.get("email"),
        "contact_phone": phone or None,
        "contact_company": contact.get("company"),
    }


class ListingService:
    """Owner-facing operations on listings"""

    def __init__(self, db: Session):
        self.db = db
        self.repository = ListingRepository(db)
        self.audit = AuditTrail(self.repository)

    def _owned_listing(self, listing_id: str, owner_id: str, for_update: bool = False) -> Listing:
        if not owner_id:
            raise AuthorizationError("An authenticated user is required")
        listing = (
            self.repository.get_for_update(listing_id) if for_update else self.repository.get(listing_id)
        )
        if listing is None:
            raise NotFoundError(f"Listing {listing_id} not found")
        if listing.owner_id != owner_id:
            raise AuthorizationError("Only the listing owner can modify this listing")
        return listing

    def create_listing(self, owner_id: str, fields: Mapping[str, Any]) -> Listing:
        if not owner_id:
            raise AuthorizationError("An authenticated user is required")

        material_type = _parse_enum(MaterialType, fields.get("material_type"), "material_type")
        listing_type = _parse_enum(ListingType, fields.get("listing_type"), "listing_type")
        quantity = parse_quantity(fields.get("quantity"))
        unit = unit_for(material_type)
        requested_unit = fields.get("unit")
        if requested_unit is not None and _parse_enum(Unit, requested_unit, "unit") != unit:
            raise ValidationError(f"unit for {material_type.value} is always {unit.value}")
        latitude, longitude = _parse_coordinates(fields.get("latitude"), fields.get("longitude"))

        listing = Listing(
            owner_id=owner_id,
            site_name=_parse_text(fields.get("site_name"), "site_name"),
            description=fields.get("description"),
            material_type=material_type,
            listing_type=listing_type,
            quantity=quantity,
            unit=unit,
            location=_parse_text(fields.get("location"), "location"),
            latitude=latitude,
            longitude=longitude,
            status=ListingStatus.ACTIVE,
            **_contact_fields(fields.get("contact")),
        )

        with unit_of_work(self.db):
            self.repository.add(listing)

        logger.info(
            "listing_created",
            extra={"listing_id": listing.id, "owner_id": owner_id, "quantity": str(quantity)},
        )
        return listing

    def update_listing(self, listing_id: str, owner_id: str, patch: Mapping[str, Any]) -> Listing:
        with unit_of_work(self.db):
            listing = self._owned_listing(listing_id, owner_id, for_update=True)

            protected = sorted(set(patch) & PROTECTED_FIELDS)
            if protected:
                raise ValidationError(f"Fields cannot be edited directly: {', '.join(protected)}")
            unknown = sorted(set(patch) - EDITABLE_FIELDS)
            if unknown:
                raise ValidationError(f"Unknown fields: {', '.join(unknown)}")
            if listing.status != ListingStatus.ACTIVE:
                raise InvalidStateError("Only active listings can be edited")

            changes: Dict[str, Any] = {}
            for field in REQUIRED_TEXT_FIELDS:
                if field in patch:
                    changes[field] = _parse_text(patch[field], field)
            if "description" in patch:
                changes["description"] = patch["description"]
            if "listing_type" in patch:
                changes["listing_type"] = _parse_enum(ListingType, patch["listing_type"], "listing_type")
            if "material_type" in patch:
                material_type = _parse_enum(MaterialType, patch["material_type"], "material_type")
                changes["material_type"] = material_type
                changes["unit"] = unit_for(material_type)
            if "latitude" in patch or "longitude" in patch:
                changes["latitude"], changes["longitude"] = _parse_coordinates(
                    patch.get("latitude", listing.latitude),
                    patch.get("longitude", listing.longitude),
                )

            for field, value in changes.items():
                setattr(listing, field, value)

        logger.info("listing_updated", extra={"listing_id": listing_id, "fields": sorted(changes)})
        return listing

    def get_listing(self, listing_id: str) -> Listing:
        listing = self.repository.get(listing_id)
        if listing is None:
            raise NotFoundError(f"Listing {listing_id} not found")
        return listing

    def list_active_all(self) -> List[Listing]:
        return self.repository.list_active()

    def list_active_by_owner(self, owner_id: str) -> List[Listing]:
        return self.repository.list_by_owner(owner_id, ListingStatus.ACTIVE)

    def list_by_owner(self, owner_id: str, status: Optional[ListingStatus] = None) -> List[Listing]:
        return self.repository.list_by_owner(owner_id, status)

    def soft_delete(self, listing_id: str, owner_id: str) -> DeletedListing:
        """Tombstone then remove an active listing, as one unit."""
        with unit_of_work(self.db):
            listing = self._owned_listing(listing_id, owner_id, for_update=True)
            if listing.status != ListingStatus.ACTIVE:
                raise InvalidStateError("Completed listings are part of the audit trail and cannot be deleted")

            tombstone = self.audit.tombstone(listing, deleted_by=owner_id)
            self.db.flush()
            self.repository.delete(listing)

        logger.info("listing_deleted", extra={"listing_id": listing_id, "owner_id": owner_id})
        return tombstone
