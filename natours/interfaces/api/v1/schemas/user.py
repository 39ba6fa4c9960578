from pydantic import EmailStr, Field, model_validator

from natours.domain.roles import UserRole
from natours.interfaces.api.v1.schemas.base import CamelModel


class SignupRequest(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=8)
    password_confirm: str

    @model_validator(mode="after")
    def check_passwords_match(self) -> "SignupRequest":
        if self.password != self.password_confirm:
            raise ValueError("Passwords are not the same!")
        return self


class LoginRequest(CamelModel):
    email: str | None = None
    password: str | None = None


class UpdatePasswordRequest(CamelModel):
    password_current: str
    password: str = Field(min_length=8)
    password_confirm: str

    @model_validator(mode="after")
    def check_passwords_match(self) -> "UpdatePasswordRequest":
        if self.password != self.password_confirm:
            raise ValueError("Passwords are not the same!")
        return self


class UpdateMeRequest(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    email: EmailStr | None = None
    password: str | None = None
    password_confirm: str | None = None


class UserUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    email: EmailStr | None = None
    photo: str | None = None
    role: UserRole | None = None
    active: bool | None = None
