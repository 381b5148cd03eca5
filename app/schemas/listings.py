from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from app.models.listing import Currency, ListingStatus, ListingType
from app.schemas.expertise import ExpertiseOut


class SaleDetails(BaseModel):
    model_config = ConfigDict(extra="forbid")

    has_clear_title: bool = True
    financing_available: bool = False
    trade_in_accepted: bool = False
    warranty_info: Optional[str] = Field(default=None, max_length=200)


class RentDetails(BaseModel):
    model_config = ConfigDict(extra="forbid")

    security_deposit: float = Field(ge=0)
    minimum_rental_period: str = Field(default="1 day", max_length=50)
    maximum_rental_period: Optional[str] = Field(default=None, max_length=50)
    weekly_rate: Optional[float] = Field(default=None, ge=0)
    monthly_rate: Optional[float] = Field(default=None, ge=0)
    mileage_limit_per_day: Optional[int] = Field(default=None, ge=0, le=10000)
    insurance_included: bool = False
    fuel_policy: Optional[str] = Field(default=None, max_length=100)
    delivery_available: bool = False
    delivery_fee: Optional[float] = Field(default=None, ge=0)


DETAILS_BY_TYPE = {
    ListingType.SALE: SaleDetails,
    ListingType.RENT: RentDetails,
}


class ListingFields(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    price: float = Field(ge=0, le=100_000_000)
    currency: Currency = Currency.TND
    is_price_negotiable: bool = False
    contact_phone: Optional[str] = Field(default=None, max_length=20)
    vehicle_id: str
    location: str = Field(min_length=1, max_length=100)
    features: List[str] = Field(default_factory=list)


class SaleListingCreate(ListingFields):
    listing_type: Literal["SALE"]
    details: SaleDetails = Field(default_factory=SaleDetails)


class RentListingCreate(ListingFields):
    listing_type: Literal["RENT"]
    details: RentDetails


ListingCreate = Union[SaleListingCreate, RentListingCreate]


class ListingUpdate(BaseModel):
    """Partial update; ``details`` is merged into the stored variant payload and re-validated."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    price: Optional[float] = Field(default=None, ge=0, le=100_000_000)
    currency: Optional[Currency] = None
    is_price_negotiable: Optional[bool] = None
    contact_phone: Optional[str] = Field(default=None, max_length=20)
    location: Optional[str] = Field(default=None, min_length=1, max_length=100)
    features: Optional[List[str]] = None
    details: Optional[Dict[str, Any]] = None


class ListingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    listing_type: ListingType
    owner_id: str
    vehicle_id: str
    title: str
    description: Optional[str] = None
    price: float
    currency: Currency
    is_price_negotiable: bool
    contact_phone: Optional[str] = None
    location: str
    features: List[str]
    details: Dict[str, Any]
    status: ListingStatus
    expiration_date: Optional[datetime] = None
    view_count: int
    version: int
    created_at: datetime
    updated_at: Optional[datetime] = None
    expertise: Optional[ExpertiseOut] = None


class ListingPage(BaseModel):
    items: List[ListingOut]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool
