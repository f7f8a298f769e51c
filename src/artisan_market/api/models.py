"""Pydantic models for the HTTP surface."""

from decimal import Decimal

from pydantic import BaseModel, Field


class MintRequest(BaseModel):
    """Mint an item whose metadata is already stored."""

    description: str = Field(min_length=1)
    materials: str = Field(min_length=1)
    creator_details: str = Field(min_length=1)
    content_locator: str = Field(min_length=1)
    initial_price: Decimal | None = None


class PublishRequest(BaseModel):
    """Upload an image and metadata, then mint."""

    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    materials: str = Field(min_length=1)
    creator_details: str = Field(min_length=1)
    image_base64: str = Field(min_length=1)
    initial_price: Decimal | None = None


class ListingRequest(BaseModel):
    """Put an item up for sale at a display-unit price."""

    price: Decimal


class PurchaseRequest(BaseModel):
    """Buy an item; payment defaults to the currently listed price."""

    payment: Decimal | None = None


class RegisterCreatorRequest(BaseModel):
    """Grant the artisan role to an address."""

    address: str
