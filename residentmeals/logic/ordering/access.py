"""Who may read or change a resident's orders."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from residentmeals.domain.Resident import Resident
from residentmeals.domain.errors import AuthorizationError
from residentmeals.utilities.constants import ROLE_ADMIN, ROLE_FACILITY_ADMIN, ROLE_FACILITY_USER

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """Identity established by the authentication layer."""
    user_id: str
    role: str
    facility_id: Optional[str] = None


def can_access_resident(actor: Actor, resident: Resident) -> bool:
    if actor.role == ROLE_ADMIN:
        return True
    if actor.role == ROLE_FACILITY_ADMIN:
        return bool(actor.facility_id) and resident.facility_id == actor.facility_id
    if actor.role == ROLE_FACILITY_USER:
        return resident.assigned_user_id is not None and resident.assigned_user_id == actor.user_id
    return False


def ensure_resident_access(actor: Actor, resident: Resident) -> None:
    if not can_access_resident(actor, resident):
        logger.warning("Access denied: user %s (%s) -> resident %s",
                       actor.user_id, actor.role, resident.id)
        raise AuthorizationError("Access denied")


__all__ = ["Actor", "can_access_resident", "ensure_resident_access"]
