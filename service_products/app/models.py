"""
Data models for the Products service.
"""

from pydantic import BaseModel, ConfigDict, Field


class ProductEntity(BaseModel):
    """Entity validator for the `create` & `insert` actions."""

    model_config = ConfigDict(strict=True)

    name: str = Field(..., min_length=3, description="Product name")
    price: float = Field(..., gt=0, description="Unit price")
    quantity: int = Field(default=0, description="Items in stock")


class QuantityChangeParams(BaseModel):
    """Parameters of the `increaseQuantity` & `decreaseQuantity` actions."""

    model_config = ConfigDict(strict=True)

    id: str = Field(..., min_length=1)
    value: int = Field(..., gt=0, description="Amount to add or remove")
