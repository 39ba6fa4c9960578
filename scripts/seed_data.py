from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from natours.application.services.review_service import calc_average_ratings
from natours.application.services.security_service import hash_password
from natours.application.services.tour_service import slugify
from natours.config import settings
from natours.domain.roles import UserRole
from natours.domain.tour_difficulty import TourDifficulty
from natours.infrastructure.db.models import Review, Tour, User
from natours.infrastructure.db.session import Database
from natours.infrastructure.logging import configure_logging, get_logger

logger = get_logger(__name__)

DEFAULT_PASSWORD = "test1234"


def create_user_if_missing(db: Session, name: str, email: str, role: UserRole) -> User:
    existing = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if existing is not None:
        return existing

    user = User(name=name, email=email, role=role.value, hashed_password=hash_password(DEFAULT_PASSWORD))
    db.add(user)
    db.flush()
    return user


def create_tour_if_missing(db: Session, name: str, guides: list[User], **fields) -> Tour:
    tour = db.execute(select(Tour).where(Tour.name == name)).scalar_one_or_none()
    if tour is not None:
        return tour

    tour = Tour(name=name, slug=slugify(name), **fields)
    tour.guides = guides
    db.add(tour)
    db.flush()
    return tour


def create_review_if_missing(db: Session, tour: Tour, user: User, review: str, rating: float) -> None:
    existing = db.execute(
        select(Review).where(Review.tour_id == tour.id, Review.user_id == user.id)
    ).scalar_one_or_none()
    if existing is not None:
        return
    db.add(Review(tour_id=tour.id, user_id=user.id, review=review, rating=rating))


def start_dates(*values: tuple[int, int, int]) -> list[str]:
    return [datetime(year, month, day, 9, tzinfo=timezone.utc).isoformat() for year, month, day in values]


def main() -> None:
    configure_logging(settings)
    database = Database(settings.database_url)
    database.create_all()
    db = database.session()
    try:
        admin = create_user_if_missing(db, "Jonas Schmedtmann", "admin@natours.io", UserRole.admin)
        lead_guide = create_user_if_missing(db, "Lourdes Browning", "lourdes@example.com", UserRole.lead_guide)
        guide = create_user_if_missing(db, "Kate Morrison", "kate@example.com", UserRole.guide)
        traveller = create_user_if_missing(db, "Sophie Louise Hart", "sophie@example.com", UserRole.user)
        second_traveller = create_user_if_missing(db, "Ayla Cornell", "ayla@example.com", UserRole.user)

        forest_hiker = create_tour_if_missing(
            db,
            "The Forest Hiker",
            [lead_guide, guide],
            duration=5,
            max_group_size=25,
            difficulty=TourDifficulty.easy.value,
            price=397,
            summary="Breathtaking hike through the Canadian Banff National Park",
            description="Guided hike through forests, lakes and glaciers.\nSleep in cozy hotels with wifi.",
            image_cover="tour-1-cover.jpg",
            images=["tour-1-1.jpg", "tour-1-2.jpg", "tour-1-3.jpg"],
            start_dates=start_dates((2027, 4, 25), (2027, 7, 20), (2027, 10, 5)),
            start_location={
                "type": "Point",
                "coordinates": [-115.570154, 51.178456],
                "address": "224 Banff Ave, Banff, AB, Canada",
                "description": "Banff, CAN",
            },
            locations=[
                {"type": "Point", "coordinates": [-116.214531, 51.417611], "description": "Banff National Park", "day": 1},
                {"type": "Point", "coordinates": [-118.076152, 52.875223], "description": "Jasper National Park", "day": 3},
            ],
        )
        sea_explorer = create_tour_if_missing(
            db,
            "The Sea Explorer",
            [lead_guide],
            duration=7,
            max_group_size=15,
            difficulty=TourDifficulty.medium.value,
            price=497,
            summary="Exploring the jaw-dropping US east coast by foot and by boat",
            image_cover="tour-2-cover.jpg",
            images=["tour-2-1.jpg", "tour-2-2.jpg", "tour-2-3.jpg"],
            start_dates=start_dates((2027, 6, 19), (2027, 7, 20), (2027, 8, 18)),
            start_location={
                "type": "Point",
                "coordinates": [-80.185942, 25.774772],
                "address": "301 Biscayne Blvd, Miami, FL 33132, USA",
                "description": "Miami, USA",
            },
        )
        create_tour_if_missing(
            db,
            "The Snow Adventurer",
            [guide],
            duration=4,
            max_group_size=10,
            difficulty=TourDifficulty.difficult.value,
            price=997,
            summary="Exciting adventure in the snow with snowboarding and skiing",
            image_cover="tour-3-cover.jpg",
            start_dates=start_dates((2028, 1, 5), (2028, 2, 12)),
            start_location={
                "type": "Point",
                "coordinates": [-106.822318, 39.190872],
                "address": "419 S Mill St, Aspen, CO 81611, USA",
                "description": "Aspen, USA",
            },
        )

        create_review_if_missing(db, forest_hiker, traveller, "Amazing views and a great guide!", 5)
        create_review_if_missing(db, forest_hiker, second_traveller, "Loved every day of it.", 4)
        create_review_if_missing(db, sea_explorer, traveller, "Boat days were the highlight.", 4)
        db.commit()

        for tour in (forest_hiker, sea_explorer):
            calc_average_ratings(db, tour.id)
        logger.info("seed_completed", admin_email=admin.email)
    finally:
        db.close()
        database.close()


if __name__ == "__main__":
    main()
