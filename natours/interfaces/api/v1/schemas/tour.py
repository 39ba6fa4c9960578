from datetime import datetime
from typing import Literal

from pydantic import Field, model_validator

from natours.domain.tour_difficulty import TourDifficulty
from natours.interfaces.api.v1.schemas.base import CamelModel


class GeoPoint(CamelModel):
    type: Literal["Point"] = "Point"
    coordinates: list[float] = Field(min_length=2, max_length=2, description="[longitude, latitude]")
    address: str | None = None
    description: str | None = None


class TourLocation(GeoPoint):
    day: int | None = Field(default=None, ge=0)


class TourCreate(CamelModel):
    name: str = Field(min_length=10, max_length=40)
    duration: int = Field(gt=0)
    max_group_size: int = Field(gt=0)
    difficulty: TourDifficulty
    ratings_average: float = Field(default=4.5, ge=1, le=5)
    ratings_quantity: int = Field(default=0, ge=0)
    price: float = Field(gt=0)
    price_discount: float | None = Field(default=None, ge=0)
    summary: str = Field(min_length=1)
    description: str | None = None
    image_cover: str = Field(min_length=1)
    images: list[str] = Field(default_factory=list)
    start_dates: list[datetime] = Field(default_factory=list)
    secret_tour: bool = False
    start_location: GeoPoint | None = None
    locations: list[TourLocation] = Field(default_factory=list)
    guides: list[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_price_discount(self) -> "TourCreate":
        if self.price_discount is not None and self.price_discount >= self.price:
            raise ValueError(f"Discount price ({self.price_discount}) should be below regular price")
        return self


class TourUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=10, max_length=40)
    duration: int | None = Field(default=None, gt=0)
    max_group_size: int | None = Field(default=None, gt=0)
    difficulty: TourDifficulty | None = None
    ratings_average: float | None = Field(default=None, ge=1, le=5)
    ratings_quantity: int | None = Field(default=None, ge=0)
    price: float | None = Field(default=None, gt=0)
    price_discount: float | None = Field(default=None, ge=0)
    summary: str | None = Field(default=None, min_length=1)
    description: str | None = None
    image_cover: str | None = Field(default=None, min_length=1)
    images: list[str] | None = None
    start_dates: list[datetime] | None = None
    secret_tour: bool | None = None
    start_location: GeoPoint | None = None
    locations: list[TourLocation] | None = None
    guides: list[int] | None = None
