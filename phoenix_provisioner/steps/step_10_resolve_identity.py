from __future__ import annotations

import logging
from typing import Callable

from ..lib.context import OpsCtx
from ..lib.home import ensure_user_home, home_dir_for
from ..lib.identity import RealUser, resolve_real_user
from ..session import Phase, Session

logger = logging.getLogger(__name__)

Resolver = Callable[..., RealUser]


class ResolveIdentityStep:
    step_id = "10_resolve_identity"
    reaches = Phase.IDENTITY_RESOLVED

    def __init__(self, resolver: Resolver = resolve_real_user):
        self.resolver = resolver

    def run(self, ctx: OpsCtx, session: Session) -> Session:
        user = self.resolver(log=ctx.logger("identity"))
        ensure_user_home(ctx, user)
        home = home_dir_for(ctx, user)

        ctx.log.info("Detected real user: %s (UID %s, GID %s) -> %s", user.username, user.uid, user.gid, home)
        return session.advance(
            self.reaches,
            self.step_id,
            username=user.username,
            uid=user.uid,
            gid=user.gid,
            user_home=home,
        )
