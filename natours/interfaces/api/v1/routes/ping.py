from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from natours.application.services.health_service import get_health_status
from natours.config import Settings
from natours.infrastructure.cache.redis_client import redis_from_settings
from natours.infrastructure.db.session import get_db
from natours.interfaces.api.v1.dependencies.auth import get_settings

router = APIRouter(tags=["health"])


@router.get("/ping")
def ping(db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    redis_client = redis_from_settings(settings)
    return get_health_status(db=db, redis_client=redis_client)
