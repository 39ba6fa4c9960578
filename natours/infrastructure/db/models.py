from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, Numeric, String, Table, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from natours.domain.roles import UserRole
from natours.domain.tour_difficulty import TourDifficulty
from natours.infrastructure.db.session import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes for timezone-aware columns.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )


tour_guides = Table(
    "tour_guides",
    Base.metadata,
    Column("tour_id", ForeignKey("tours.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    photo: Mapped[str] = mapped_column(String(255), default="default.jpg", nullable=False)
    role: Mapped[str] = mapped_column(String(20), default=UserRole.user.value, nullable=False, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    password_changed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    reviews: Mapped[list["Review"]] = relationship("Review", back_populates="user", cascade="all, delete-orphan")
    bookings: Mapped[list["Booking"]] = relationship("Booking", back_populates="user", cascade="all, delete-orphan")


class Tour(TimestampMixin, Base):
    __tablename__ = "tours"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(60), unique=True, nullable=False, index=True)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    max_group_size: Mapped[int] = mapped_column(Integer, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(20), default=TourDifficulty.easy.value, nullable=False)
    ratings_average: Mapped[float] = mapped_column(Float, default=4.5, nullable=False)
    ratings_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    price: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    price_discount: Mapped[float | None] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)
    summary: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_cover: Mapped[str] = mapped_column(String(255), nullable=False)
    images: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    start_dates: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    secret_tour: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    start_location: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    locations: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)

    guides: Mapped[list[User]] = relationship("User", secondary=tour_guides, order_by="User.id")
    reviews: Mapped[list["Review"]] = relationship(
        "Review",
        back_populates="tour",
        cascade="all, delete-orphan",
        order_by="Review.id",
    )
    bookings: Mapped[list["Booking"]] = relationship("Booking", back_populates="tour", cascade="all, delete-orphan")

    @property
    def duration_weeks(self) -> float:
        return self.duration / 7


class Review(TimestampMixin, Base):
    __tablename__ = "reviews"
    __table_args__ = (UniqueConstraint("tour_id", "user_id", name="uq_review_tour_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    review: Mapped[str] = mapped_column(Text, nullable=False)
    rating: Mapped[float] = mapped_column(Float, nullable=False)
    tour_id: Mapped[int] = mapped_column(ForeignKey("tours.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    tour: Mapped[Tour] = relationship("Tour", back_populates="reviews")
    user: Mapped[User] = relationship("User", back_populates="reviews")


class Booking(TimestampMixin, Base):
    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    tour_id: Mapped[int] = mapped_column(ForeignKey("tours.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    price: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    paid: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    stripe_session_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)

    tour: Mapped[Tour] = relationship("Tour", back_populates="bookings")
    user: Mapped[User] = relationship("User", back_populates="bookings")
