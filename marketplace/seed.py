from decimal import Decimal

from sqlalchemy.orm import Session

from marketplace.models.db_models import Company, Listing
from marketplace.models.enums import ListingType, MaterialType, unit_for

DEMO_OWNER_ID = "demo-user"

COMPANIES = [
    "Apex Excavating",
    "Bluestem Site Works",
    "Cornerstone Aggregates",
    "Heartland Grading",
    "Missouri River Earthworks",
    "Prairie Fill & Haul",
]

DEMO_LISTINGS = [
    {"site_name": "Crossroads Tower Dig", "material_type": "soil", "listing_type": "Export", "quantity": 1200, "location": "1800 Grand Blvd, Kansas City, MO", "latitude": 39.0918, "longitude": -94.5817},
    {"site_name": "Northland Retail Pad", "material_type": "structural_fill", "listing_type": "Import", "quantity": 650, "location": "8600 N Boardwalk Ave, Kansas City, MO", "latitude": 39.2465, "longitude": -94.6520},
    {"site_name": "Olathe Quarry Overrun", "material_type": "gravel", "listing_type": "Export", "quantity": 300, "location": "15500 S Keeler St, Olathe, KS", "latitude": 38.8572, "longitude": -94.8123},
    {"site_name": "Lee's Summit Subdivision", "material_type": "soil", "listing_type": "Import", "quantity": 900, "location": "SW 3rd St, Lee's Summit, MO", "latitude": 38.9108, "longitude": -94.3822},
    {"site_name": "Lawrence Parking Expansion", "material_type": "gravel", "listing_type": "Import", "quantity": 180, "location": "1100 Massachusetts St, Lawrence, KS", "latitude": 38.9634, "longitude": -95.2356},
    {"site_name": "Topeka Levee Repair", "material_type": "structural_fill", "listing_type": "Export", "quantity": 2200, "location": "NE Sardou Ave, Topeka, KS", "latitude": 39.0731, "longitude": -95.6553},
]


def seed_companies(db: Session):
    # Seed any missing companies (idempotent)
    existing_names = {n for (n,) in db.query(Company.name).all() if n}
    to_add = [Company(name=name) for name in COMPANIES if name not in existing_names]
    if to_add:
        db.add_all(to_add)
        db.commit()


def seed_listings(db: Session):
    # Demo listings are only added to an empty marketplace
    if db.query(Listing.id).first() is not None:
        return

    to_add = []
    for item in DEMO_LISTINGS:
        data = dict(item)
        data["quantity"] = Decimal(str(data["quantity"]))
        data["material_type"] = MaterialType(data["material_type"])
        data["listing_type"] = ListingType(data["listing_type"])
        data["unit"] = unit_for(data["material_type"])
        to_add.append(Listing(owner_id=DEMO_OWNER_ID, contact_first_name="Demo", **data))

    db.add_all(to_add)
    db.commit()
