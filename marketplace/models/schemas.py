from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from marketplace.models.enums import ListingStatus, ListingType, MaterialType, QuantitySort, Unit


class CompanyOut(BaseModel):
    id: str
    name: str

    class Config:
        from_attributes = True


class ContactSnapshot(BaseModel):
    """Owner contact details supplied by the identity provider at creation time."""
    first_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None


class ListingCreate(BaseModel):
    site_name: str
    description: Optional[str] = None
    material_type: MaterialType
    listing_type: ListingType
    quantity: Decimal
    unit: Optional[Unit] = None  # derived from material_type; only checked for agreement
    location: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    contact: ContactSnapshot = Field(default_factory=ContactSnapshot)

    class Config:
        json_schema_extra = {
            "example": {
                "site_name": "Riverside Excavation",
                "description": "Clean fill, loader on site weekdays",
                "material_type": "soil",
                "listing_type": "Export",
                "quantity": 400,
                "location": "1200 Main St, Kansas City, MO",
                "latitude": 39.10,
                "longitude": -94.58,
                "contact": {
                    "first_name": "Dana",
                    "email": "dana@example.com",
                    "phone": "8165550142",
                    "company": "Riverside Earthworks",
                },
            }
        }


class ListingUpdate(BaseModel):
    # Unknown and protected keys are passed through so the service can reject them by name
    model_config = ConfigDict(extra="allow")

    site_name: Optional[str] = None
    description: Optional[str] = None
    material_type: Optional[MaterialType] = None
    listing_type: Optional[ListingType] = None
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class ListingOut(BaseModel):
    id: str
    owner_id: str
    site_name: str
    description: Optional[str] = None
    material_type: MaterialType
    listing_type: ListingType
    quantity: Decimal
    unit: Unit
    location: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    contact_first_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_company: Optional[str] = None
    status: ListingStatus
    parent_listing_id: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CompleteListingRequest(BaseModel):
    company_id: str
    quantity_moved: Decimal

    class Config:
        json_schema_extra = {
            "example": {
                "company_id": "3f0c9a6e-0d7e-4a57-9d43-5b1f0b7c2a10",
                "quantity_moved": 40,
            }
        }


class CompletedListingOut(BaseModel):
    id: str
    listing_id: str
    company_id: str
    company_name: Optional[str] = None
    quantity_moved: Decimal
    unit: Unit
    material_type: MaterialType
    created_by: str
    completed_at: datetime
    request_id: Optional[str] = None

    class Config:
        from_attributes = True


class FulfillmentOut(BaseModel):
    completed: ListingOut
    residual: Optional[ListingOut] = None
    record: CompletedListingOut
    replayed: bool = False


class DeletedListingOut(BaseModel):
    id: str
    listing_id: str
    owner_id: str
    site_name: str
    material_type: MaterialType
    listing_type: ListingType
    quantity: Decimal
    unit: Unit
    status: ListingStatus
    deleted_at: datetime
    deleted_by: str

    class Config:
        from_attributes = True


class RankedListingOut(BaseModel):
    listing: ListingOut
    distance_miles: Optional[int] = None


class DiscoveryResponse(BaseModel):
    imports: List[RankedListingOut]
    exports: List[RankedListingOut]
    viewer_is_subscriber: bool
    radius_miles: Optional[int] = None  # cap actually applied, None when uncapped
    quantity_sort: Optional[QuantitySort] = None


class LineageOut(BaseModel):
    listing_id: str
    ancestors: List[ListingOut]    # root first
    descendants: List[ListingOut]  # breadth-first


class MaterialMovementRow(BaseModel):
    company_name: str
    material_type: MaterialType
    total_quantity: Decimal


class MaterialMovementOut(BaseModel):
    tons: List[MaterialMovementRow] = Field(default_factory=list)
    cubic_yards: List[MaterialMovementRow] = Field(default_factory=list)


class ContactLinksOut(BaseModel):
    listing_id: str
    email_subject: str
    email_body: str
    mailto: Optional[str] = None
    tel: Optional[str] = None
