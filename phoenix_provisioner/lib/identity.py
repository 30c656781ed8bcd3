from __future__ import annotations

import logging
import os
import pwd
from dataclasses import dataclass
from typing import Mapping, Optional

from ..errors import PreconditionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RealUser:
    username: str
    uid: int
    gid: int
    home: str


def _from_pwd(entry: pwd.struct_passwd) -> RealUser:
    return RealUser(username=entry.pw_name, uid=entry.pw_uid, gid=entry.pw_gid, home=entry.pw_dir)


def _owner_uid(path: str) -> Optional[int]:
    try:
        return os.stat(path).st_uid
    except OSError:
        return None


def _user_by_name(name: str, log: logging.Logger) -> Optional[RealUser]:
    try:
        return _from_pwd(pwd.getpwnam(name))
    except KeyError:
        log.warning("SUDO_USER=%s is not in the password database", name)
        return None


def _user_owning(var: str, path: str, log: logging.Logger) -> Optional[RealUser]:
    log.info("Checking %s: %s", var, path)
    uid = _owner_uid(path)
    if uid is None:
        log.warning("%s points at %s, which cannot be stat'ed", var, path)
        return None
    try:
        user = _from_pwd(pwd.getpwuid(uid))
    except KeyError:
        log.warning("%s is owned by uid %s, which has no password entry", path, uid)
        return None
    log.info("Resolved from %s: %s (UID %s)", var, user.username, user.uid)
    return user


def resolve_real_user(
    environ: Optional[Mapping[str, str]] = None,
    *,
    log: Optional[logging.Logger] = None,
) -> RealUser:
    """Identify the human who elevated to root.

    Detection order (first success wins):
    1. SUDO_USER
    2. owner of $XAUTHORITY (X11 sessions)
    3. owner of $XDG_RUNTIME_DIR (Wayland sessions)
    """

    env = os.environ if environ is None else environ
    log = log or logger
    log.info("Detecting real user identity...")

    sudo_user = env.get("SUDO_USER")
    if sudo_user:
        log.info("Found SUDO_USER: %s", sudo_user)
        user = _user_by_name(sudo_user, log)
        if user is not None:
            return user

    for var in ("XAUTHORITY", "XDG_RUNTIME_DIR"):
        path = env.get(var)
        if not path:
            continue
        user = _user_owning(var, path, log)
        if user is not None:
            return user

    raise PreconditionError(
        "Unable to determine real user: no usable SUDO_USER, XAUTHORITY or XDG_RUNTIME_DIR"
    )
