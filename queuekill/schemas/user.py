"""Pydantic schemas for registration, login and the current user."""

from __future__ import annotations

from datetime import datetime

from pydantic import field_validator

from queuekill.models.user import UserRole
from queuekill.schemas.base import CamelModel
from queuekill.schemas.queue import QueueRead
from queuekill.schemas.restaurant import RestaurantRead


def _normalise_email(v: str) -> str:
    v = v.strip().lower()
    local, _, domain = v.partition("@")
    if not local or "." not in domain:
        raise ValueError("Invalid email address")
    return v


def _required(v: str, label: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError(f"{label} is required")
    return v


class RegisterCustomerRequest(CamelModel):
    email: str
    password: str
    name: str
    phone: str | None = None

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalise_email(v)

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters")
        return v

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return _required(v, "Name")


class RegisterOwnerRequest(RegisterCustomerRequest):
    restaurant_name: str
    restaurant_address: str
    restaurant_type: str | None = None
    restaurant_description: str | None = None
    restaurant_long_description: str | None = None
    restaurant_menu_text: str | None = None
    initial_queue_name: str | None = None

    @field_validator("restaurant_name")
    @classmethod
    def _restaurant_name(cls, v: str) -> str:
        return _required(v, "Restaurant name")

    @field_validator("restaurant_address")
    @classmethod
    def _restaurant_address(cls, v: str) -> str:
        return _required(v, "Restaurant address")


class LoginRequest(CamelModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalise_email(v)

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if not v:
            raise ValueError("Password is required")
        return v


class UserSummary(CamelModel):
    id: int
    email: str
    name: str
    role: UserRole


class UserRead(UserSummary):
    phone: str | None = None
    created_at: datetime | None = None


class AuthData(CamelModel):
    user: UserSummary
    token: str


class OwnerAuthData(AuthData):
    restaurant: RestaurantRead
    queue: QueueRead | None = None
