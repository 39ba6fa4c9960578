from pydantic import Field

from natours.interfaces.api.v1.schemas.base import CamelModel


class BookingCreate(CamelModel):
    tour: int
    user: int
    price: float = Field(gt=0)
    paid: bool = True


class BookingUpdate(CamelModel):
    price: float | None = Field(default=None, gt=0)
    paid: bool | None = None
