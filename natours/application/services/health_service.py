from redis import Redis
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from natours.infrastructure.cache.redis_client import ping_redis


def database_is_reachable(db: Session) -> bool:
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        return False
    return True


def get_health_status(db: Session, redis_client: Redis | None) -> dict:
    return {
        "status": "success",
        "message": "Natours API is running",
        "db_connected": database_is_reachable(db),
        "redis_connected": ping_redis(redis_client),
    }
