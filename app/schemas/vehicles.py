from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, constr


class VehicleCreate(BaseModel):
    brand: constr(min_length=1, max_length=100)  # type: ignore[valid-type]
    model: constr(min_length=1, max_length=100)  # type: ignore[valid-type]
    year: int = Field(ge=1900, le=2100)
    registration_number: constr(min_length=1, max_length=50)  # type: ignore[valid-type]
    vehicle_type: constr(min_length=1, max_length=50)  # type: ignore[valid-type]
    mileage: Optional[float] = Field(default=None, ge=0)
    color: Optional[str] = Field(default=None, max_length=50)


class VehicleOut(VehicleCreate):
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    created_at: datetime
