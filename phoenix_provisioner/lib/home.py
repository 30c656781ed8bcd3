from __future__ import annotations

import os
import stat

from ..errors import PreconditionError, StateCheckError
from .context import OpsCtx
from .env import HOME_MODE
from .identity import RealUser


def home_dir_for(ctx: OpsCtx, user: RealUser) -> str:
    if user.home and user.home != "/":
        return user.home
    return os.path.join(ctx.paths.home_root, user.username)


def ensure_user_home(ctx: OpsCtx, user: RealUser) -> bool:
    """Make sure the real user's home exists, is at least 0755 and is theirs.

    Returns True if anything had to be changed.
    """

    log = ctx.logger("home")
    home = home_dir_for(ctx, user)
    log.info("Ensuring home directory: %s", home)

    try:
        st = os.stat(home)
    except FileNotFoundError:
        st = None
    except OSError as e:
        raise StateCheckError(f"Failed to stat home directory {home}: {e}") from e

    if st is not None and not stat.S_ISDIR(st.st_mode):
        raise PreconditionError(f"{home} exists but is not a directory")

    try:
        if st is None:
            log.info("Creating home directory: %s", home)
            os.makedirs(home, mode=HOME_MODE)
            os.chmod(home, HOME_MODE)
            os.chown(home, user.uid, user.gid)
            return True

        changed = False
        mode = stat.S_IMODE(st.st_mode)
        if mode & HOME_MODE != HOME_MODE:
            log.warning("Home directory has mode %o, fixing to include %o", mode, HOME_MODE)
            os.chmod(home, mode | HOME_MODE)
            changed = True

        if (st.st_uid, st.st_gid) != (user.uid, user.gid):
            log.info("Setting ownership of %s to %s:%s", home, user.uid, user.gid)
            os.chown(home, user.uid, user.gid)
            changed = True
    except OSError as e:
        raise PreconditionError(f"Failed to prepare home directory {home}: {e}") from e

    if not changed:
        log.info("Home directory verified: %s", home)
    return changed
