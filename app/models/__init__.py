from app.models.base import Base
from app.models.user import AccountStatus, User, UserRole
from app.models.refresh_token import RefreshToken
from app.models.user_token import TokenPurpose, UserToken
from app.models.vehicle import Vehicle
from app.models.listing import Currency, Listing, ListingStatus, ListingType
from app.models.expertise import Expertise, ExpertiseDecision

__all__ = [
    "Base",
    "AccountStatus",
    "User",
    "UserRole",
    "RefreshToken",
    "TokenPurpose",
    "UserToken",
    "Vehicle",
    "Currency",
    "Listing",
    "ListingStatus",
    "ListingType",
    "Expertise",
    "ExpertiseDecision",
]
