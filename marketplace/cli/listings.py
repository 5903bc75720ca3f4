import argparse
import json

from marketplace.db import Base, SessionLocal, engine
from marketplace.errors import MarketplaceError
from marketplace.logging_config import LoggingConfig
from marketplace.models import db_models  # noqa: F401
from marketplace.models.enums import display_name
from marketplace.repositories import ListingRepository
from marketplace.seed import seed_companies, seed_listings
from marketplace.services.audit import AuditTrail


def _init_db(args, db):
    Base.metadata.create_all(bind=engine)
    seed_companies(db)
    if args.demo_listings:
        seed_listings(db)
    print("Database ready.")


def _movement(args, db):
    totals = AuditTrail(ListingRepository(db)).material_movement(args.user)
    if args.json:
        print(json.dumps(totals, default=str, indent=2))
        return
    for label, key in (("Tons", "tons"), ("Cubic Yards", "cubic_yards")):
        print(f"\n{label}")
        rows = totals[key]
        if not rows:
            print("  No material movement data available")
        for row in rows:
            print(f"  {row['company_name']:<32} {display_name(row['material_type']):<16} {row['total_quantity']}")


def _lineage(args, db):
    ancestors, descendants = AuditTrail(ListingRepository(db)).lineage(args.listing_id)
    for l in ancestors:
        print(f"  ^ {l.id}  {l.status.value:<9} {l.quantity} {l.unit.value}")
    print(f"  * {args.listing_id}")
    for l in descendants:
        print(f"  v {l.id}  {l.status.value:<9} {l.quantity} {l.unit.value}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Construction marketplace admin CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    init_p = sub.add_parser("init-db", help="Create tables and seed companies")
    init_p.add_argument("--demo-listings", action="store_true", help="Also seed demo listings into an empty database")
    init_p.set_defaults(func=_init_db)

    move_p = sub.add_parser("movement", help="Material moved per company and material type")
    move_p.add_argument("--user", help="Only completions recorded by this user id")
    move_p.add_argument("--json", action="store_true", help="Print raw JSON")
    move_p.set_defaults(func=_movement)

    lineage_p = sub.add_parser("lineage", help="Show the split history around a listing")
    lineage_p.add_argument("listing_id")
    lineage_p.set_defaults(func=_lineage)

    args = parser.parse_args(argv)
    LoggingConfig.setup_logging()

    db = SessionLocal()
    try:
        args.func(args, db)
    except MarketplaceError as e:
        parser.exit(1, f"{e.code}: {e.message}\n")
    finally:
        db.close()


if __name__ == "__main__":
    main()
