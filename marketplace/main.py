from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from marketplace.config import settings
from marketplace.db import Base, SessionLocal, engine, get_db
from marketplace.errors import MarketplaceError
from marketplace.logging_config import LoggingConfig, get_logger
from marketplace.models import db_models  # noqa: F401  (registers tables on Base.metadata)
from marketplace.models.enums import ListingStatus, MaterialType, QuantitySort
from marketplace.models.schemas import (
    CompanyOut,
    CompletedListingOut,
    CompleteListingRequest,
    ContactLinksOut,
    DeletedListingOut,
    DiscoveryResponse,
    FulfillmentOut,
    LineageOut,
    ListingCreate,
    ListingOut,
    ListingUpdate,
    MaterialMovementOut,
    RankedListingOut,
)
from marketplace.repositories import ListingRepository
from marketplace.seed import seed_companies, seed_listings
from marketplace.services.audit import AuditTrail
from marketplace.services.contact import contact_links
from marketplace.services.discovery import DiscoveryFilters, DiscoveryService
from marketplace.services.fulfillment import FulfillmentService
from marketplace.services.listings import ListingService

logger = get_logger(__name__)

app = FastAPI(title="Construction Materials Marketplace")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MarketplaceError)
def marketplace_error_handler(_request: Request, exc: MarketplaceError):
    return JSONResponse(status_code=exc.http_status, content={"error": exc.code, "detail": exc.message})


def get_current_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    """Identity comes from the upstream auth layer as a trusted header."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return x_user_id


def get_listing_service(db: Session = Depends(get_db)) -> ListingService:
    return ListingService(db)


def get_fulfillment_service(db: Session = Depends(get_db)) -> FulfillmentService:
    return FulfillmentService(db)


def get_audit_trail(db: Session = Depends(get_db)) -> AuditTrail:
    return AuditTrail(ListingRepository(db))


def _listing_out(listing) -> ListingOut:
    return ListingOut.model_validate(listing)


@app.on_event("startup")
def on_startup():
    LoggingConfig.setup_logging()
    Base.metadata.create_all(bind=engine)
    logger.info("startup", extra={"seed_on_startup": settings.SEED_ON_STARTUP})
    if not settings.SEED_ON_STARTUP:
        return
    db = SessionLocal()
    try:
        seed_companies(db)
        seed_listings(db)
    finally:
        db.close()


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/companies", response_model=list[CompanyOut])
def list_companies(db: Session = Depends(get_db)):
    return ListingRepository(db).list_companies()


@app.post("/listings", response_model=ListingOut, status_code=201)
def create_listing(
    payload: ListingCreate,
    user_id: str = Depends(get_current_user_id),
    service: ListingService = Depends(get_listing_service),
):
    listing = service.create_listing(user_id, payload.model_dump())
    return _listing_out(listing)


@app.get("/listings", response_model=list[ListingOut])
def list_active_listings(service: ListingService = Depends(get_listing_service)):
    return [_listing_out(l) for l in service.list_active_all()]


@app.get("/listings/mine", response_model=list[ListingOut])
def list_my_listings(
    status: ListingStatus = ListingStatus.ACTIVE,
    user_id: str = Depends(get_current_user_id),
    service: ListingService = Depends(get_listing_service),
):
    return [_listing_out(l) for l in service.list_by_owner(user_id, status)]


@app.get("/listings/feed", response_model=DiscoveryResponse)
def listings_feed(
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    material_types: List[MaterialType] = Query(default=[]),
    quantity_sort: Optional[QuantitySort] = None,
    radius_miles: Optional[int] = None,
    subscriber: bool = Header(False, alias="X-Subscriber"),
    db: Session = Depends(get_db),
):
    if (lat is None) != (lng is None):
        raise HTTPException(status_code=400, detail="lat and lng must be provided together")
    if radius_miles is not None and radius_miles not in settings.SUBSCRIBER_RADIUS_TIERS:
        tiers = ", ".join(str(t) for t in settings.SUBSCRIBER_RADIUS_TIERS)
        raise HTTPException(status_code=400, detail=f"radius_miles must be one of: {tiers}")

    viewer_location = (lat, lng) if lat is not None else None
    filters = DiscoveryFilters(
        material_types=frozenset(material_types),
        quantity_sort=quantity_sort,
        radius_miles=radius_miles,
    )
    result = DiscoveryService(db).feed(viewer_location, filters, viewer_is_subscriber=subscriber)

    def _ranked(items):
        return [RankedListingOut(listing=_listing_out(r.listing), distance_miles=r.distance_miles) for r in items]

    return DiscoveryResponse(
        imports=_ranked(result.imports),
        exports=_ranked(result.exports),
        viewer_is_subscriber=subscriber,
        radius_miles=result.radius_miles,
        quantity_sort=quantity_sort,
    )


@app.get("/listings/{listing_id}", response_model=ListingOut)
def get_listing(listing_id: str, service: ListingService = Depends(get_listing_service)):
    return _listing_out(service.get_listing(listing_id))


@app.patch("/listings/{listing_id}", response_model=ListingOut)
def update_listing(
    listing_id: str,
    patch: ListingUpdate,
    user_id: str = Depends(get_current_user_id),
    service: ListingService = Depends(get_listing_service),
):
    listing = service.update_listing(listing_id, user_id, patch.model_dump(exclude_unset=True))
    return _listing_out(listing)


@app.delete("/listings/{listing_id}", response_model=DeletedListingOut)
def delete_listing(
    listing_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ListingService = Depends(get_listing_service),
):
    return DeletedListingOut.model_validate(service.soft_delete(listing_id, user_id))


@app.post("/listings/{listing_id}/complete", response_model=FulfillmentOut)
def complete_listing(
    listing_id: str,
    payload: CompleteListingRequest,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    user_id: str = Depends(get_current_user_id),
    service: FulfillmentService = Depends(get_fulfillment_service),
):
    result = service.complete_listing(
        listing_id,
        acting_user_id=user_id,
        company_id=payload.company_id,
        quantity_moved=payload.quantity_moved,
        request_id=idempotency_key,
    )
    return FulfillmentOut(
        completed=_listing_out(result.completed),
        residual=_listing_out(result.residual) if result.residual is not None else None,
        record=CompletedListingOut.model_validate(result.record),
        replayed=result.replayed,
    )


@app.get("/listings/{listing_id}/lineage", response_model=LineageOut)
def listing_lineage(listing_id: str, audit: AuditTrail = Depends(get_audit_trail)):
    ancestors, descendants = audit.lineage(listing_id)
    return LineageOut(
        listing_id=listing_id,
        ancestors=[_listing_out(l) for l in ancestors],
        descendants=[_listing_out(l) for l in descendants],
    )


@app.get("/listings/{listing_id}/completions", response_model=list[CompletedListingOut])
def listing_completions(listing_id: str, audit: AuditTrail = Depends(get_audit_trail)):
    return [CompletedListingOut.model_validate(r) for r in audit.completions_for_listing(listing_id)]


@app.get("/listings/{listing_id}/contact", response_model=ContactLinksOut)
def listing_contact(
    listing_id: str,
    sender_first_name: Optional[str] = None,
    service: ListingService = Depends(get_listing_service),
):
    listing = service.get_listing(listing_id)
    return ContactLinksOut(**contact_links(listing, sender_first_name))


@app.get("/analytics/material-movement", response_model=MaterialMovementOut)
def material_movement(
    mine: bool = False,
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    audit: AuditTrail = Depends(get_audit_trail),
):
    if mine and not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return MaterialMovementOut(**audit.material_movement(x_user_id if mine else None))
