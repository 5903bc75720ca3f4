from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from marketplace.errors import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from marketplace.models.db_models import DeletedListing, Listing
from marketplace.models.enums import ListingStatus, MaterialType, Unit
from marketplace.services.fulfillment import FulfillmentService
from marketplace.services.listings import ListingService, parse_quantity
from tests.factories import listing_fields


def test_create_listing_derives_unit(make_listing):
    gravel = make_listing(material_type="gravel")
    soil = make_listing(material_type="soil")
    fill = make_listing(material_type="structural_fill")

    assert gravel.unit == Unit.TONS
    assert soil.unit == Unit.CUBIC_YARDS
    assert fill.unit == Unit.CUBIC_YARDS
    assert gravel.status == ListingStatus.ACTIVE
    assert gravel.quantity == Decimal("100")
    assert gravel.parent_listing_id is None
    assert gravel.id


def test_create_listing_snapshots_contact(make_listing):
    listing = make_listing()
    assert listing.contact_first_name == "Dana"
    assert listing.contact_email == "dana@example.com"
    assert listing.contact_phone == "(816) 555-0142"
    assert listing.contact_company == "Riverside Earthworks"


@pytest.mark.parametrize("quantity", [0, -5, "abc", None, "1.234"])
def test_create_listing_rejects_bad_quantity(db, quantity):
    with pytest.raises(ValidationError):
        ListingService(db).create_listing("owner-1", listing_fields(quantity=quantity))
    assert db.query(Listing).count() == 0


def test_create_listing_rejects_unit_that_disagrees_with_material(db):
    with pytest.raises(ValidationError, match="Tons"):
        ListingService(db).create_listing("owner-1", listing_fields(material_type="gravel", unit="Cubic Yards"))

    listing = ListingService(db).create_listing("owner-1", listing_fields(material_type="gravel", unit="Tons"))
    assert listing.unit == Unit.TONS


def test_create_listing_requires_both_coordinates(db):
    with pytest.raises(ValidationError, match="together"):
        ListingService(db).create_listing("owner-1", listing_fields(longitude=None))
    with pytest.raises(ValidationError, match="latitude"):
        ListingService(db).create_listing("owner-1", listing_fields(latitude=95))

    listing = ListingService(db).create_listing("owner-1", listing_fields(latitude=None, longitude=None))
    assert listing.latitude is None and listing.longitude is None


def test_create_listing_requires_site_name_and_material(db):
    with pytest.raises(ValidationError, match="site_name"):
        ListingService(db).create_listing("owner-1", listing_fields(site_name="  "))
    with pytest.raises(ValidationError, match="material_type"):
        ListingService(db).create_listing("owner-1", listing_fields(material_type="sand"))


def test_update_listing_by_owner(db, make_listing):
    listing = make_listing(material_type="gravel")
    updated = ListingService(db).update_listing(
        listing.id, "owner-1", {"site_name": "New Name", "material_type": "soil"}
    )
    assert updated.site_name == "New Name"
    assert updated.material_type == MaterialType.SOIL
    assert updated.unit == Unit.CUBIC_YARDS


def test_update_listing_by_other_user_is_rejected(db, make_listing):
    listing = make_listing()
    with pytest.raises(AuthorizationError):
        ListingService(db).update_listing(listing.id, "intruder", {"site_name": "Mine now"})

    db.expire_all()
    assert db.get(Listing, listing.id).site_name == "Riverside Excavation"


@pytest.mark.parametrize("field,value", [
    ("status", "completed"),
    ("quantity", 5),
    ("parent_listing_id", "abc"),
    ("unit", "Tons"),
])
def test_update_listing_rejects_engine_owned_fields(db, make_listing, field, value):
    listing = make_listing()
    with pytest.raises(ValidationError, match=field):
        ListingService(db).update_listing(listing.id, "owner-1", {field: value})

    db.expire_all()
    fresh = db.get(Listing, listing.id)
    assert fresh.status == ListingStatus.ACTIVE
    assert fresh.quantity == Decimal("100")


def test_update_completed_listing_is_rejected(db, make_listing, company):
    listing = make_listing()
    FulfillmentService(db).complete_listing(listing.id, "owner-1", company.id, 100)

    with pytest.raises(InvalidStateError):
        ListingService(db).update_listing(listing.id, "owner-1", {"description": "too late"})


def test_update_missing_listing(db):
    with pytest.raises(NotFoundError):
        ListingService(db).update_listing("nope", "owner-1", {"site_name": "x"})


def test_list_active_is_newest_first(db, make_listing, company):
    base = datetime(2024, 5, 1, tzinfo=timezone.utc)
    first = make_listing(site_name="first")
    second = make_listing(site_name="second", owner_id="owner-2")
    third = make_listing(site_name="third")
    for offset, listing in enumerate([first, second, third]):
        listing.created_at = base + timedelta(days=offset)
    db.commit()

    FulfillmentService(db).complete_listing(second.id, "owner-2", company.id, 100)

    service = ListingService(db)
    assert [l.site_name for l in service.list_active_all()] == ["third", "first"]
    assert [l.site_name for l in service.list_active_by_owner("owner-1")] == ["third", "first"]
    assert service.list_active_by_owner("owner-2") == []
    assert [l.site_name for l in service.list_by_owner("owner-2", ListingStatus.COMPLETED)] == ["second"]


def test_soft_delete_writes_tombstone_then_removes(db, make_listing):
    listing = make_listing(description="to be removed")
    listing_id = listing.id

    tombstone = ListingService(db).soft_delete(listing_id, "owner-1")

    assert db.get(Listing, listing_id) is None
    stored = db.query(DeletedListing).filter(DeletedListing.listing_id == listing_id).one()
    assert stored.id == tombstone.id
    assert stored.deleted_by == "owner-1"
    assert stored.description == "to be removed"
    assert stored.quantity == Decimal("100")
    assert stored.unit == Unit.TONS
    assert stored.contact_email == "dana@example.com"
    assert stored.status == ListingStatus.ACTIVE
    assert stored.deleted_at is not None


def test_soft_delete_by_other_user_changes_nothing(db, make_listing):
    listing = make_listing()
    with pytest.raises(AuthorizationError):
        ListingService(db).soft_delete(listing.id, "intruder")

    assert db.get(Listing, listing.id) is not None
    assert db.query(DeletedListing).count() == 0


def test_soft_delete_twice_is_not_found(db, make_listing):
    listing = make_listing()
    ListingService(db).soft_delete(listing.id, "owner-1")
    with pytest.raises(NotFoundError):
        ListingService(db).soft_delete(listing.id, "owner-1")
    assert db.query(DeletedListing).count() == 1


def test_soft_delete_completed_listing_is_rejected(db, make_listing, company):
    listing = make_listing()
    FulfillmentService(db).complete_listing(listing.id, "owner-1", company.id, 100)

    with pytest.raises(InvalidStateError):
        ListingService(db).soft_delete(listing.id, "owner-1")
    assert db.query(DeletedListing).count() == 0


@pytest.mark.parametrize("quantity", [
    "1234567890123456789012345678.123",
    "10000000000",
    "9999999999.999",
])
def test_parse_quantity_rejects_oversized_values(quantity):
    with pytest.raises(ValidationError):
        parse_quantity(quantity)


def test_parse_quantity_accepts_column_maximum():
    assert parse_quantity("9999999999.99") == Decimal("9999999999.99")
    assert parse_quantity("12.50") == Decimal("12.50")


def test_create_listing_rejects_huge_quantity(db):
    with pytest.raises(ValidationError):
        ListingService(db).create_listing("owner-1", listing_fields(quantity="1234567890123456789012345678.123"))
    assert db.query(Listing).count() == 0
