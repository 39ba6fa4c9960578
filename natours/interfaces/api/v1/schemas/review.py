from pydantic import Field

from natours.interfaces.api.v1.schemas.base import CamelModel


class ReviewCreate(CamelModel):
    review: str = Field(min_length=1)
    rating: float = Field(ge=1, le=5)
    tour: int | None = None
    user: int | None = None


class ReviewUpdate(CamelModel):
    review: str | None = Field(default=None, min_length=1)
    rating: float | None = Field(default=None, ge=1, le=5)
