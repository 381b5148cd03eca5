from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import AccessTokenClaims, get_current_principal
from app.schemas.vehicles import VehicleCreate, VehicleOut
from app.services.vehicles import VehicleService

router = APIRouter(prefix="/vehicles", tags=["vehicles"])
vehicle_service = VehicleService()


def get_vehicle_service() -> VehicleService:
    return vehicle_service


@router.post("", response_model=VehicleOut, status_code=201)
def register_vehicle(
    payload: VehicleCreate,
    db: Session = Depends(get_db),
    principal: AccessTokenClaims = Depends(get_current_principal),
    service: VehicleService = Depends(get_vehicle_service),
) -> VehicleOut:
    return service.register(db, principal.subject_id, payload)


@router.get("", response_model=list[VehicleOut])
def list_my_vehicles(
    db: Session = Depends(get_db),
    principal: AccessTokenClaims = Depends(get_current_principal),
    service: VehicleService = Depends(get_vehicle_service),
) -> list[VehicleOut]:
    return service.list_for_owner(db, principal.subject_id)
