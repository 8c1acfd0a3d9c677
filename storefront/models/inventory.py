"""Inventory models"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class StockStatus(str, Enum):
    IN_STOCK = "IN_STOCK"
    LOW_STOCK = "LOW_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"


class AvailabilitySnapshot(BaseModel):
    """Read-only mirror of the inventory service for one product or variant"""
    model_config = ConfigDict(frozen=True)

    subject_id: str
    product_id: Optional[str] = None
    stock_status: StockStatus
    available_quantity: int = Field(ge=0)
    updated_at: Optional[datetime] = None

    @property
    def is_available(self) -> bool:
        return self.stock_status != StockStatus.OUT_OF_STOCK

    def can_fulfil(self, quantity: int) -> bool:
        return self.is_available and self.available_quantity >= quantity


class AvailabilityView(BaseModel):
    """What the UI sees of the reconciler at a point in time"""
    loading: bool
    error: Optional[str] = None
    product_availability: dict[str, AvailabilitySnapshot] = {}
    variant_availability: dict[str, AvailabilitySnapshot] = {}
    unavailable: list[str] = []
    unknown: list[str] = []

    def is_product_available(self, product_id: str) -> bool:
        snapshot = self.product_availability.get(product_id)
        return snapshot.is_available if snapshot else False

    def is_variant_available(self, variant_id: str) -> bool:
        snapshot = self.variant_availability.get(variant_id)
        return snapshot.is_available if snapshot else False

    def product_stock_status(self, product_id: str) -> Optional[StockStatus]:
        snapshot = self.product_availability.get(product_id)
        return snapshot.stock_status if snapshot else None

    def variant_stock_status(self, variant_id: str) -> Optional[StockStatus]:
        snapshot = self.variant_availability.get(variant_id)
        return snapshot.stock_status if snapshot else None
