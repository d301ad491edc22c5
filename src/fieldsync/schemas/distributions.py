"""Pydantic request/response models for distribution endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, model_validator

from ..models.domain import Distribution, DistributionStatus, PaymentMethod


class DistributionCreate(BaseModel):
    address: str = Field(..., min_length=1, description="Street address of the visit.")
    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)
    status: DistributionStatus = DistributionStatus.DONE
    amount: float = Field(default=0.0, ge=0.0, description="Amount collected; only meaningful when done.")
    payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = None
    recipient_name: Optional[str] = None
    owner_id: Optional[str] = Field(default=None, description="Owning binôme; only honoured for admins.")


class DistributionUpdate(BaseModel):
    address: Optional[str] = Field(default=None, min_length=1)
    lat: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    lng: Optional[float] = Field(default=None, ge=-180.0, le=180.0)
    status: Optional[DistributionStatus] = None
    amount: Optional[float] = Field(default=None, ge=0.0)
    payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = None
    recipient_name: Optional[str] = None
    owner_id: Optional[str] = None

    @model_validator(mode="after")
    def _require_change(self) -> "DistributionUpdate":
        if not self.model_fields_set:
            raise ValueError("at least one field must be provided")
        return self


class DistributionModel(BaseModel):
    id: str
    address: str
    lat: float
    lng: float
    status: DistributionStatus
    amount: float
    payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = None
    recipient_name: Optional[str] = None
    owner_id: str
    created_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, distribution: Distribution) -> "DistributionModel":
        return cls(**distribution.to_dict())


class DistributionListResponse(BaseModel):
    items: list[DistributionModel]
    total: int


class DistributionStatsResponse(BaseModel):
    total: int
    effectue: int
    repasser: int
    refus: int
    maison_vide: int
    total_amount: float
    success_rate: float
