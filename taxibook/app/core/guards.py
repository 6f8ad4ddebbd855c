"""
Security guards for role-based and participant-based access control.

Provides dependencies for protecting endpoints.
"""

from typing import List, Optional
from fastapi import Depends
from taxibook.app.models.enums import UserRole
from taxibook.app.models.negotiation_enums import MessageSender
from taxibook.app.core.dependencies import SessionContext, get_current_session
from taxibook.app.core.exceptions import InsufficientPermissionsError


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/driver/negotiations")
        async def list_own(session: SessionContext = Depends(require_role([UserRole.DRIVER]))):
            ...

    Raises:
        InsufficientPermissionsError 403 if session role is not in allowed_roles
    """
    async def role_checker(session: SessionContext = Depends(get_current_session)) -> SessionContext:
        if session.role not in allowed_roles:
            raise InsufficientPermissionsError(
                f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )
        return session

    return role_checker


class NegotiationParticipantGuard:
    """
    Checks that a signed-in user acts only as their own side of a negotiation.

    Guests (no session) may act only as the customer: the negotiation id
    is the capability they hold. Driver-side actions need the matching
    driver session. Admins may act for either side.
    """

    def enforce(
        self,
        session: Optional[SessionContext],
        sender: MessageSender,
        driver_id: str,
        customer_id: Optional[str],
    ):
        if session is None:
            if sender == MessageSender.DRIVER:
                raise InsufficientPermissionsError("Sign in as the driver to respond as the driver")
            return

        if session.is_admin:
            return

        if session.is_driver:
            if sender != MessageSender.DRIVER or session.driver_id != driver_id:
                raise InsufficientPermissionsError(
                    "Drivers may only respond as the driver on their own negotiations"
                )
            return

        if sender != MessageSender.CUSTOMER:
            raise InsufficientPermissionsError("Customers may only respond as the customer")
        if customer_id is not None and customer_id != session.user_id:
            raise InsufficientPermissionsError(
                "Access denied. You do not have permission to access this negotiation."
            )
