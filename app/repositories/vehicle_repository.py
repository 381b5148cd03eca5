from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.vehicle import Vehicle


class VehicleRepository:
    def create(self, db: Session, owner_id: str, **fields) -> Vehicle:
        vehicle = Vehicle(owner_id=owner_id, **fields)
        db.add(vehicle)
        db.flush()
        return vehicle

    def get(self, db: Session, vehicle_id: str) -> Optional[Vehicle]:
        return db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()

    def list_for_owner(self, db: Session, owner_id: str) -> List[Vehicle]:
        return db.query(Vehicle).filter(Vehicle.owner_id == owner_id).order_by(Vehicle.created_at.desc()).all()
