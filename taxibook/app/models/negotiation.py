"""
Negotiation database models.

A negotiation is one price discussion between a customer and a driver;
its messages form an append-only, numbered thread.
"""

import uuid
from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Enum, Text, UniqueConstraint
from taxibook.app.db.session import Base
from taxibook.app.core.timeutils import utcnow
from taxibook.app.models.negotiation_enums import NegotiationStatus, MessageSender, MessageType


class Negotiation(Base):
    """
    Negotiation model.

    current_offer always mirrors the price of the latest offer/counter message.
    Once status leaves PENDING it never changes again.
    """
    __tablename__ = "negotiations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # References (booking request and customer are absent for guest negotiations)
    booking_request_id = Column(String(100), nullable=True, index=True)
    customer_id = Column(String(36), nullable=True, index=True)
    driver_id = Column(String(36), ForeignKey("drivers.id"), nullable=False, index=True)

    # Customer contact
    customer_name = Column(String(200), nullable=False)
    customer_phone = Column(String(30), nullable=False)

    # Prices
    original_price = Column(Float, nullable=False)
    proposed_price = Column(Float, nullable=False)
    current_offer = Column(Float, nullable=False)

    # Status
    status = Column(Enum(NegotiationStatus), default=NegotiationStatus.PENDING, nullable=False, index=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Negotiation(id={self.id}, driver_id={self.driver_id}, status='{self.status.value}')>"


class NegotiationMessage(Base):
    """One entry in a negotiation thread."""
    __tablename__ = "negotiation_messages"
    __table_args__ = (
        UniqueConstraint("negotiation_id", "sequence_number", name="uq_negotiation_message_seq"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    negotiation_id = Column(String(36), ForeignKey("negotiations.id"), nullable=False, index=True)
    sequence_number = Column(Integer, nullable=False)  # 1, 2, 3, ...

    sender = Column(Enum(MessageSender), nullable=False)
    type = Column(Enum(MessageType), nullable=False)
    price = Column(Float, nullable=True)
    message = Column(Text, nullable=True)

    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<NegotiationMessage(negotiation_id={self.negotiation_id}, seq={self.sequence_number}, type='{self.type.value}')>"
