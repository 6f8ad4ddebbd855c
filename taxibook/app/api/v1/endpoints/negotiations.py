"""
Negotiation API Endpoints.

Customers (signed in or guests) open a price negotiation with a driver; both
sides then counter, accept or decline until the negotiation is closed.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from taxibook.app.db.session import get_db
from taxibook.app.core.dependencies import SessionContext, get_optional_session
from taxibook.app.core.guards import require_role, NegotiationParticipantGuard
from taxibook.app.core.exceptions import NotFoundError, InsufficientPermissionsError
from taxibook.app.models.enums import UserRole
from taxibook.app.domain.negotiation.negotiation_service import NegotiationService
from taxibook.app.schemas.negotiation import (
    NegotiationCreate, NegotiationCreateResponse, NegotiationResponse, NegotiationListResponse,
    CounterOfferRequest, AcceptOfferRequest, DeclineOfferRequest, NegotiationActionResponse,
    ExpirationCheckResponse,
)

router = APIRouter(prefix="/negotiations", tags=["Negotiations"])
driver_router = APIRouter(prefix="/driver/negotiations", tags=["Driver - Negotiations"])
customer_router = APIRouter(prefix="/customer/negotiations", tags=["Customer - Negotiations"])
participant_guard = NegotiationParticipantGuard()


async def _get_or_404(db: AsyncSession, negotiation_id: str) -> NegotiationResponse:
    negotiation = await NegotiationService.get_negotiation(db, negotiation_id)
    if negotiation is None:
        raise NotFoundError("Negotiation", negotiation_id)
    return negotiation


def _action_response(negotiation: NegotiationResponse) -> NegotiationActionResponse:
    return NegotiationActionResponse(
        id=negotiation.id,
        status=negotiation.status,
        current_offer=negotiation.current_offer,
    )


@router.post("", response_model=NegotiationCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_negotiation(
    body: NegotiationCreate,
    session: Optional[SessionContext] = Depends(get_optional_session),
    db: AsyncSession = Depends(get_db),
):
    """
    Open a negotiation with the customer's first offer.

    Guests may negotiate; the customer id is then stored as empty.
    """
    if session is not None and session.is_driver:
        raise InsufficientPermissionsError("Drivers cannot open negotiations")

    customer_id = session.user_id if session is not None and session.is_customer else None

    negotiation_id = await NegotiationService.create_negotiation(
        db,
        booking_request_id=body.booking_request_id,
        customer_id=customer_id,
        customer_name=body.customer_name,
        customer_phone=body.customer_phone,
        driver_id=body.driver_id,
        original_price=body.original_price,
        proposed_price=body.proposed_price,
    )
    negotiation = await NegotiationService.get_negotiation(db, negotiation_id)
    return NegotiationCreateResponse(id=negotiation_id, status=negotiation.status)


@router.get("/{negotiation_id}", response_model=NegotiationResponse)
async def get_negotiation(
    negotiation_id: str = Path(..., description="Negotiation ID"),
    db: AsyncSession = Depends(get_db),
):
    """Negotiation with its full message thread."""
    return await _get_or_404(db, negotiation_id)


@router.post("/{negotiation_id}/counter", response_model=NegotiationActionResponse)
async def counter_offer(
    body: CounterOfferRequest,
    negotiation_id: str = Path(..., description="Negotiation ID"),
    session: Optional[SessionContext] = Depends(get_optional_session),
    db: AsyncSession = Depends(get_db),
):
    """Propose a new price. Fails with 409 once the negotiation is closed."""
    current = await _get_or_404(db, negotiation_id)
    participant_guard.enforce(session, body.sender, current.driver_id, current.customer_id)

    negotiation = await NegotiationService.counter_offer(
        db, negotiation_id, body.sender, body.price, message=body.message
    )
    return _action_response(negotiation)


@router.post("/{negotiation_id}/accept", response_model=NegotiationActionResponse)
async def accept_offer(
    body: AcceptOfferRequest,
    negotiation_id: str = Path(..., description="Negotiation ID"),
    session: Optional[SessionContext] = Depends(get_optional_session),
    db: AsyncSession = Depends(get_db),
):
    """Accept the current offer; it becomes the agreed price."""
    current = await _get_or_404(db, negotiation_id)
    participant_guard.enforce(session, body.sender, current.driver_id, current.customer_id)

    negotiation = await NegotiationService.accept_offer(db, negotiation_id, body.sender)
    return _action_response(negotiation)


@router.post("/{negotiation_id}/decline", response_model=NegotiationActionResponse)
async def decline_offer(
    body: DeclineOfferRequest,
    negotiation_id: str = Path(..., description="Negotiation ID"),
    session: Optional[SessionContext] = Depends(get_optional_session),
    db: AsyncSession = Depends(get_db),
):
    """Decline and close the negotiation, optionally with a reason."""
    current = await _get_or_404(db, negotiation_id)
    participant_guard.enforce(session, body.sender, current.driver_id, current.customer_id)

    negotiation = await NegotiationService.decline_offer(db, negotiation_id, body.sender, reason=body.reason)
    return _action_response(negotiation)


@router.post("/{negotiation_id}/expire", response_model=NegotiationActionResponse)
async def expire_negotiation(
    negotiation_id: str = Path(..., description="Negotiation ID"),
    session: SessionContext = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db),
):
    """Mark a pending negotiation expired (used by the external expiry job)."""
    negotiation = await NegotiationService.expire_negotiation(db, negotiation_id)
    return _action_response(negotiation)


@router.post("/{negotiation_id}/check-expiration", response_model=ExpirationCheckResponse)
async def check_expiration(
    negotiation_id: str = Path(..., description="Negotiation ID"),
    db: AsyncSession = Depends(get_db),
):
    """
    Apply the expiry policy on read.

    A pending negotiation past its expiry time is marked expired here.
    """
    expired = await NegotiationService.check_expiration(db, negotiation_id)
    return ExpirationCheckResponse(id=negotiation_id, expired=expired)


@driver_router.get("", response_model=NegotiationListResponse)
async def list_driver_negotiations(
    session: SessionContext = Depends(require_role([UserRole.DRIVER])),
    db: AsyncSession = Depends(get_db),
):
    """Pending negotiations waiting on the signed-in driver."""
    negotiations = await NegotiationService.get_driver_negotiations(db, session.driver_id)
    return NegotiationListResponse(negotiations=negotiations, total=len(negotiations))


@customer_router.get("", response_model=NegotiationListResponse)
async def list_customer_negotiations(
    session: SessionContext = Depends(require_role([UserRole.CUSTOMER])),
    db: AsyncSession = Depends(get_db),
):
    """All negotiations opened by the signed-in customer."""
    negotiations = await NegotiationService.get_customer_negotiations(db, session.user_id)
    return NegotiationListResponse(negotiations=negotiations, total=len(negotiations))
