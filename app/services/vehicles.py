import logging
from typing import List

from sqlalchemy.orm import Session

from app.models.vehicle import Vehicle
from app.repositories.vehicle_repository import VehicleRepository
from app.schemas.vehicles import VehicleCreate

logger = logging.getLogger(__name__)


class VehicleService:
    def __init__(self, vehicle_repo: VehicleRepository | None = None):
        self.vehicle_repo = vehicle_repo or VehicleRepository()

    def register(self, db: Session, owner_id: str, payload: VehicleCreate) -> Vehicle:
        vehicle = self.vehicle_repo.create(db, owner_id, **payload.model_dump())
        db.commit()
        db.refresh(vehicle)
        logger.info("Vehicle %s registered by %s", vehicle.id, owner_id)
        return vehicle

    def list_for_owner(self, db: Session, owner_id: str) -> List[Vehicle]:
        return self.vehicle_repo.list_for_owner(db, owner_id)
