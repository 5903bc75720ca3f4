import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, Numeric, String, Text, Float
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace.db import Base
from marketplace.models.enums import ListingStatus, ListingType, MaterialType, Unit


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum(enum_cls):
    return Enum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
    )


QUANTITY = Numeric(12, 2, asdecimal=True)


class Company(Base):
    __tablename__ = "companies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)


class Listing(Base):
    __tablename__ = "listings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    site_name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    material_type: Mapped[MaterialType] = mapped_column(_enum(MaterialType), nullable=False)
    listing_type: Mapped[ListingType] = mapped_column(_enum(ListingType), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    unit: Mapped[Unit] = mapped_column(_enum(Unit), nullable=False)
    location: Mapped[str] = mapped_column(String(300), nullable=False)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Snapshot of the owner's contact details at creation time
    contact_first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    contact_email: Mapped[str | None] = mapped_column(String(254), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    contact_company: Mapped[str | None] = mapped_column(String(200), nullable=True)

    status: Mapped[ListingStatus] = mapped_column(
        _enum(ListingStatus), nullable=False, default=ListingStatus.ACTIVE, index=True
    )
    parent_listing_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("listings.id"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


# Fields copied verbatim onto a residual listing after a partial fulfillment
DESCRIPTIVE_FIELDS = (
    "owner_id",
    "site_name",
    "description",
    "material_type",
    "listing_type",
    "unit",
    "location",
    "latitude",
    "longitude",
    "contact_first_name",
    "contact_email",
    "contact_phone",
    "contact_company",
    "created_at",
)


class CompletedListing(Base):
    __tablename__ = "completed_listings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    listing_id: Mapped[str] = mapped_column(String(36), ForeignKey("listings.id"), nullable=False, index=True)
    company_id: Mapped[str] = mapped_column(String(36), ForeignKey("companies.id"), nullable=False)
    quantity_moved: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    unit: Mapped[Unit] = mapped_column(_enum(Unit), nullable=False)
    material_type: Mapped[MaterialType] = mapped_column(_enum(MaterialType), nullable=False)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    request_id: Mapped[str | None] = mapped_column(String(128), nullable=True, unique=True)

    company: Mapped[Company] = relationship(lazy="joined")

    @property
    def company_name(self) -> str | None:
        return self.company.name if self.company is not None else None


class DeletedListing(Base):
    __tablename__ = "deleted_listings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    listing_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    site_name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    material_type: Mapped[MaterialType] = mapped_column(_enum(MaterialType), nullable=False)
    listing_type: Mapped[ListingType] = mapped_column(_enum(ListingType), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    unit: Mapped[Unit] = mapped_column(_enum(Unit), nullable=False)
    location: Mapped[str] = mapped_column(String(300), nullable=False)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    contact_first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    contact_email: Mapped[str | None] = mapped_column(String(254), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    contact_company: Mapped[str | None] = mapped_column(String(200), nullable=True)
    status: Mapped[ListingStatus] = mapped_column(_enum(ListingStatus), nullable=False)
    parent_listing_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    deleted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    deleted_by: Mapped[str] = mapped_column(String(64), nullable=False)
