"""
Negotiation-related enumerations.
"""

import enum


class NegotiationStatus(str, enum.Enum):
    """
    Negotiation status.

    PENDING: Offers are still being exchanged
    ACCEPTED: One side accepted the current offer (terminal)
    DECLINED: One side declined (terminal)
    EXPIRED: Marked expired by an external expiry policy (terminal)
    """
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self != NegotiationStatus.PENDING


class MessageSender(str, enum.Enum):
    CUSTOMER = "customer"
    DRIVER = "driver"
    SYSTEM = "system"


class MessageType(str, enum.Enum):
    OFFER = "offer"
    COUNTER = "counter"
    ACCEPT = "accept"
    DECLINE = "decline"
