from typing import Optional

from fastapi import Header

from residentmeals.domain.errors import AuthorizationError
from residentmeals.infra.Menu_Repository import MenuRepository
from residentmeals.infra.Order_Repository import OrderRepository
from residentmeals.infra.Resident_Repository import ResidentRepository
from residentmeals.infra.payment_gateway import StripeGateway
from residentmeals.logic.ordering.access import Actor
from residentmeals.logic.ordering.lifecycle import OrderLifecycle


def get_menu() -> MenuRepository:
    return MenuRepository()


def get_lifecycle() -> OrderLifecycle:
    return OrderLifecycle(
        orders=OrderRepository(),
        menu=MenuRepository(),
        residents=ResidentRepository(),
        gateway=StripeGateway(),
    )


def get_actor(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
    x_facility_id: Optional[str] = Header(default=None),
) -> Actor:
    """Identity forwarded by the authentication layer in front of this service."""
    if not x_user_id or not x_user_role:
        raise AuthorizationError("Authentication required")
    return Actor(user_id=x_user_id, role=x_user_role, facility_id=x_facility_id or None)
