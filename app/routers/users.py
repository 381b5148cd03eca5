from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import require_roles
from app.routers.auth import get_auth_service
from app.schemas.auth import RoleUpdateRequest, UserOut
from app.services.auth import AuthService

router = APIRouter(prefix="/users", tags=["users"])
authorize_admin = require_roles({"admin"})


@router.put("/{user_id}/role", response_model=UserOut)
def update_role(
    user_id: str,
    payload: RoleUpdateRequest,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
    _=Depends(authorize_admin),
) -> UserOut:
    return service.assign_role(db, user_id, payload.role)
