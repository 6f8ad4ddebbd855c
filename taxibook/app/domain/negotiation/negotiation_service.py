"""
Negotiation Service (Domain Logic).

Offer/counter-offer thread between a customer and a driver.

State machine:
    pending -> accepted | declined | expired
Terminal states never change again; any mutation on them raises
InvalidStateTransition. Expiry is decided by the reader (check_expiration)
or an external caller (expire_negotiation), never by a timer here.
"""

import math
import uuid
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError

from taxibook.app.core.config import settings
from taxibook.app.core.exceptions import ValidationError, NotFoundError, InvalidStateTransition
from taxibook.app.core.reliability import store_circuit_breaker
from taxibook.app.core.timeutils import utcnow, ensure_utc
from taxibook.app.models.driver import Driver
from taxibook.app.models.negotiation import Negotiation, NegotiationMessage
from taxibook.app.models.negotiation_enums import NegotiationStatus, MessageSender, MessageType
from taxibook.app.schemas.negotiation import NegotiationResponse, NegotiationMessageResponse

logger = logging.getLogger(__name__)

PARTICIPANTS = (MessageSender.CUSTOMER, MessageSender.DRIVER)


def _format_price(price: float) -> str:
    return str(int(price)) if float(price).is_integer() else f"{price:.2f}"


def _participant(sender) -> MessageSender:
    try:
        sender = MessageSender(sender)
    except ValueError:
        raise ValidationError(f"Unknown sender '{sender}'", field="sender")
    if sender not in PARTICIPANTS:
        raise ValidationError("Only the customer or the driver can act on a negotiation", field="sender")
    return sender


def _require_text(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} must not be empty", field=field)
    return value.strip()


def _require_positive(price: Optional[float], field: str) -> float:
    if price is None or not math.isfinite(price) or price <= 0:
        raise ValidationError(f"{field} must be greater than zero", field=field)
    return price


def _to_response(negotiation: Negotiation, messages: List[NegotiationMessage]) -> NegotiationResponse:
    return NegotiationResponse(
        id=negotiation.id,
        booking_request_id=negotiation.booking_request_id,
        customer_id=negotiation.customer_id,
        customer_name=negotiation.customer_name,
        customer_phone=negotiation.customer_phone,
        driver_id=negotiation.driver_id,
        original_price=negotiation.original_price,
        proposed_price=negotiation.proposed_price,
        current_offer=negotiation.current_offer,
        status=negotiation.status,
        messages=[
            NegotiationMessageResponse(
                sender=m.sender,
                type=m.type,
                price=m.price,
                message=m.message,
                timestamp=ensure_utc(m.timestamp),
            )
            for m in messages
        ],
        created_at=ensure_utc(negotiation.created_at),
        expires_at=ensure_utc(negotiation.expires_at),
        resolved_at=ensure_utc(negotiation.resolved_at),
    )


async def _load_messages(db: AsyncSession, negotiation_ids: List[str]) -> Dict[str, List[NegotiationMessage]]:
    if not negotiation_ids:
        return {}
    result = await db.execute(
        select(NegotiationMessage)
        .where(NegotiationMessage.negotiation_id.in_(negotiation_ids))
        .order_by(NegotiationMessage.negotiation_id, NegotiationMessage.sequence_number)
    )
    grouped: Dict[str, List[NegotiationMessage]] = {nid: [] for nid in negotiation_ids}
    for message in result.scalars().all():
        grouped[message.negotiation_id].append(message)
    return grouped


async def _load_for_update(db: AsyncSession, negotiation_id: str) -> Negotiation:
    result = await db.execute(
        select(Negotiation)
        .where(Negotiation.id == negotiation_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    negotiation = result.scalar_one_or_none()
    if negotiation is None:
        await db.rollback()
        raise NotFoundError("Negotiation", negotiation_id)
    return negotiation


async def _require_pending(db: AsyncSession, negotiation: Negotiation, action: str):
    if negotiation.status != NegotiationStatus.PENDING:
        # Read before rollback; rollback expires loaded rows
        negotiation_id, current_status = negotiation.id, negotiation.status.value
        await db.rollback()
        raise InvalidStateTransition(negotiation_id, current_status, action)


async def _append_message(
    db: AsyncSession,
    negotiation: Negotiation,
    sender: MessageSender,
    message_type: MessageType,
    price: Optional[float],
    text: Optional[str],
    now: datetime,
):
    result = await db.execute(
        select(func.coalesce(func.max(NegotiationMessage.sequence_number), 0)).where(
            NegotiationMessage.negotiation_id == negotiation.id
        )
    )
    db.add(NegotiationMessage(
        negotiation_id=negotiation.id,
        sequence_number=result.scalar() + 1,
        sender=sender,
        type=message_type,
        price=price,
        message=text,
        timestamp=now,
    ))


async def _commit_transition(db: AsyncSession, negotiation_id: str, action: str):
    try:
        await db.commit()
    except IntegrityError:
        # Another writer appended to the thread first
        await db.rollback()
        raise InvalidStateTransition(
            negotiation_id, "conflict", action,
            reason=f"Negotiation {negotiation_id} was modified concurrently; reload and retry",
        )


class NegotiationService:

    @staticmethod
    async def create_negotiation(
        db: AsyncSession,
        booking_request_id: Optional[str],
        customer_id: Optional[str],
        customer_name: str,
        customer_phone: str,
        driver_id: str,
        original_price: float,
        proposed_price: float,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Open a negotiation with the customer's first offer.

        Args:
            booking_request_id: Related booking request, None for direct negotiations
            customer_id: Signed-in customer, None for guests (stored as NULL)
            customer_name: Contact name (required)
            customer_phone: Contact phone (required)
            driver_id: Driver being negotiated with
            original_price: Driver's listed price
            proposed_price: Customer's offer, must be > 0
            now: Creation time (defaults to current UTC time)

        Returns:
            New negotiation id

        Raises:
            ValidationError: bad price or missing contact info
            NotFoundError: unknown driver
        """
        customer_name = _require_text(customer_name, "customer_name")
        customer_phone = _require_text(customer_phone, "customer_phone")
        proposed_price = _require_positive(proposed_price, "proposed_price")
        if original_price is None or not math.isfinite(original_price) or original_price < 0:
            raise ValidationError("original_price must be a finite, non-negative number", field="original_price")

        now = now or utcnow()
        negotiation_id = str(uuid.uuid4())

        async with store_circuit_breaker.guard("negotiation.create"):
            if await db.get(Driver, driver_id) is None:
                raise NotFoundError("Driver", driver_id)

            db.add(Negotiation(
                id=negotiation_id,
                booking_request_id=booking_request_id or None,
                customer_id=customer_id or None,
                customer_name=customer_name,
                customer_phone=customer_phone,
                driver_id=driver_id,
                original_price=original_price,
                proposed_price=proposed_price,
                current_offer=proposed_price,
                status=NegotiationStatus.PENDING,
                created_at=now,
                expires_at=now + timedelta(minutes=settings.negotiation_expiry_minutes),
            ))
            db.add(NegotiationMessage(
                negotiation_id=negotiation_id,
                sequence_number=1,
                sender=MessageSender.CUSTOMER,
                type=MessageType.OFFER,
                price=proposed_price,
                message=f"Customer offered KES {_format_price(proposed_price)}",
                timestamp=now,
            ))
            await db.commit()

        logger.info("Negotiation %s opened with driver %s at %s", negotiation_id, driver_id, proposed_price)
        return negotiation_id

    @staticmethod
    async def get_negotiation(db: AsyncSession, negotiation_id: str) -> Optional[NegotiationResponse]:
        """Negotiation with its ordered messages, or None."""
        async with store_circuit_breaker.guard("negotiation.get"):
            result = await db.execute(
                select(Negotiation)
                .where(Negotiation.id == negotiation_id)
                .execution_options(populate_existing=True)
            )
            negotiation = result.scalar_one_or_none()
            if negotiation is None:
                return None
            messages = await _load_messages(db, [negotiation.id])

        return _to_response(negotiation, messages[negotiation.id])

    @staticmethod
    async def counter_offer(
        db: AsyncSession,
        negotiation_id: str,
        sender,
        price: float,
        message: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> NegotiationResponse:
        """
        Propose a new price. The negotiation stays pending.

        No bound is placed on how far the counter moves from the original price.

        Raises:
            ValidationError: sender is not customer/driver, or price <= 0
            NotFoundError: unknown negotiation
            InvalidStateTransition: negotiation is not pending
        """
        sender = _participant(sender)
        price = _require_positive(price, "price")
        now = now or utcnow()

        async with store_circuit_breaker.guard("negotiation.counter"):
            negotiation = await _load_for_update(db, negotiation_id)
            await _require_pending(db, negotiation, "counter")

            text = message or f"{sender.value.capitalize()} counter-offered KES {_format_price(price)}"
            await _append_message(db, negotiation, sender, MessageType.COUNTER, price, text, now)
            negotiation.current_offer = price
            await _commit_transition(db, negotiation_id, "counter")

        logger.info("Negotiation %s: %s countered at %s", negotiation_id, sender.value, price)
        return await NegotiationService.get_negotiation(db, negotiation_id)

    @staticmethod
    async def accept_offer(
        db: AsyncSession,
        negotiation_id: str,
        sender,
        now: Optional[datetime] = None,
    ) -> NegotiationResponse:
        """
        Accept the current offer; it becomes the agreed price.

        Raises:
            NotFoundError, InvalidStateTransition, ValidationError
        """
        sender = _participant(sender)
        now = now or utcnow()

        async with store_circuit_breaker.guard("negotiation.accept"):
            negotiation = await _load_for_update(db, negotiation_id)
            await _require_pending(db, negotiation, "accept")

            agreed_price = negotiation.current_offer
            await _append_message(
                db, negotiation, sender, MessageType.ACCEPT, agreed_price,
                f"{sender.value.capitalize()} accepted the offer", now,
            )
            negotiation.status = NegotiationStatus.ACCEPTED
            negotiation.resolved_at = now
            await _commit_transition(db, negotiation_id, "accept")

        logger.info("Negotiation %s accepted by %s at %s", negotiation_id, sender.value, agreed_price)
        return await NegotiationService.get_negotiation(db, negotiation_id)

    @staticmethod
    async def decline_offer(
        db: AsyncSession,
        negotiation_id: str,
        sender,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> NegotiationResponse:
        """
        Decline and close the negotiation. The reason becomes the message text.

        Raises:
            NotFoundError, InvalidStateTransition, ValidationError
        """
        sender = _participant(sender)
        now = now or utcnow()

        async with store_circuit_breaker.guard("negotiation.decline"):
            negotiation = await _load_for_update(db, negotiation_id)
            await _require_pending(db, negotiation, "decline")

            text = reason or f"{sender.value.capitalize()} declined the offer"
            await _append_message(db, negotiation, sender, MessageType.DECLINE, None, text, now)
            negotiation.status = NegotiationStatus.DECLINED
            negotiation.resolved_at = now
            await _commit_transition(db, negotiation_id, "decline")

        logger.info("Negotiation %s declined by %s", negotiation_id, sender.value)
        return await NegotiationService.get_negotiation(db, negotiation_id)

    @staticmethod
    async def expire_negotiation(
        db: AsyncSession,
        negotiation_id: str,
        now: Optional[datetime] = None,
    ) -> NegotiationResponse:
        """
        Mark a pending negotiation expired on behalf of an external expiry policy.

        Raises:
            NotFoundError, InvalidStateTransition
        """
        now = now or utcnow()

        async with store_circuit_breaker.guard("negotiation.expire"):
            negotiation = await _load_for_update(db, negotiation_id)
            await _require_pending(db, negotiation, "expire")

            negotiation.status = NegotiationStatus.EXPIRED
            negotiation.resolved_at = now
            await db.commit()

        logger.info("Negotiation %s expired", negotiation_id)
        return await NegotiationService.get_negotiation(db, negotiation_id)

    @staticmethod
    async def check_expiration(
        db: AsyncSession,
        negotiation_id: str,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Reader-side expiry check.

        Returns:
            True if the negotiation is gone, already expired, or pending past
            its expires_at (it is marked expired in that case); False otherwise.
        """
        now = ensure_utc(now) if now else utcnow()
        negotiation = await NegotiationService.get_negotiation(db, negotiation_id)

        if negotiation is None:
            return True
        if negotiation.status == NegotiationStatus.EXPIRED:
            return True
        if negotiation.status != NegotiationStatus.PENDING:
            return False
        if now <= negotiation.expires_at:
            return False

        try:
            await NegotiationService.expire_negotiation(db, negotiation_id, now=now)
        except InvalidStateTransition:
            # Resolved by someone else in the meantime
            refreshed = await NegotiationService.get_negotiation(db, negotiation_id)
            return refreshed.status == NegotiationStatus.EXPIRED
        return True

    @staticmethod
    async def get_driver_negotiations(db: AsyncSession, driver_id: str) -> List[NegotiationResponse]:
        """Pending negotiations waiting on a driver, newest first."""
        async with store_circuit_breaker.guard("negotiation.list_driver"):
            result = await db.execute(
                select(Negotiation).where(
                    Negotiation.driver_id == driver_id,
                    Negotiation.status == NegotiationStatus.PENDING,
                ).order_by(Negotiation.created_at.desc(), Negotiation.id)
            )
            negotiations = result.scalars().all()
            messages = await _load_messages(db, [n.id for n in negotiations])

        return [_to_response(n, messages[n.id]) for n in negotiations]

    @staticmethod
    async def get_customer_negotiations(db: AsyncSession, customer_id: str) -> List[NegotiationResponse]:
        """All negotiations opened by a signed-in customer, newest first."""
        async with store_circuit_breaker.guard("negotiation.list_customer"):
            result = await db.execute(
                select(Negotiation)
                .where(Negotiation.customer_id == customer_id)
                .order_by(Negotiation.created_at.desc(), Negotiation.id)
            )
            negotiations = result.scalars().all()
            messages = await _load_messages(db, [n.id for n in negotiations])

        return [_to_response(n, messages[n.id]) for n in negotiations]
