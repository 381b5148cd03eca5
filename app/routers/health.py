from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.core.database import get_db

router = APIRouter(tags=["health"])


@router.get("/health")
def health(db: Session = Depends(get_db)) -> dict:
    # OperationalError from a dead database is mapped to 503 by the app handler
    db.execute(text("SELECT 1"))
    return {"status": "ok"}
