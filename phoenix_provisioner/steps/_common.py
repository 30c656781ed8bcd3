from __future__ import annotations

from typing import Tuple

from ..config import Blueprint, Secrets
from ..errors import PreconditionError
from ..session import Session


def require_config(session: Session) -> Tuple[Blueprint, Secrets]:
    if session.blueprint is None or session.secrets is None:
        raise PreconditionError("configuration has not been loaded")
    return session.blueprint, session.secrets


def require_user(session: Session) -> str:
    if not session.username or not session.user_home:
        raise PreconditionError("real user has not been resolved")
    return session.username
