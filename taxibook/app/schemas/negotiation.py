"""
Negotiation schemas.

Request and response models for the offer/counter-offer thread.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from taxibook.app.models.negotiation_enums import NegotiationStatus, MessageSender, MessageType


class NegotiationMessageResponse(BaseModel):
    """Single message in a negotiation thread."""
    sender: MessageSender
    type: MessageType
    price: Optional[float] = None
    message: Optional[str] = None
    timestamp: datetime

    class Config:
        from_attributes = True


class NegotiationResponse(BaseModel):
    """Full negotiation with its ordered messages."""
    id: str
    booking_request_id: Optional[str]
    customer_id: Optional[str]
    customer_name: str
    customer_phone: str
    driver_id: str
    original_price: float
    proposed_price: float
    current_offer: float
    status: NegotiationStatus
    messages: List[NegotiationMessageResponse] = []
    created_at: datetime
    expires_at: datetime
    resolved_at: Optional[datetime] = None


class NegotiationListResponse(BaseModel):
    negotiations: List[NegotiationResponse]
    total: int


class NegotiationCreate(BaseModel):
    """Schema for opening a negotiation with a driver."""
    booking_request_id: Optional[str] = None
    customer_name: str = Field(..., max_length=200)
    customer_phone: str = Field(..., max_length=30)
    driver_id: str
    original_price: float = Field(..., ge=0, allow_inf_nan=False)
    proposed_price: float = Field(..., allow_inf_nan=False)


class NegotiationCreateResponse(BaseModel):
    id: str
    status: NegotiationStatus


class CounterOfferRequest(BaseModel):
    sender: MessageSender
    price: float = Field(..., allow_inf_nan=False)
    message: Optional[str] = Field(None, max_length=500)


class AcceptOfferRequest(BaseModel):
    sender: MessageSender


class DeclineOfferRequest(BaseModel):
    sender: MessageSender
    reason: Optional[str] = Field(None, max_length=500)


class NegotiationActionResponse(BaseModel):
    id: str
    status: NegotiationStatus
    current_offer: float


class ExpirationCheckResponse(BaseModel):
    id: str
    expired: bool
