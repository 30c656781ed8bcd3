from __future__ import annotations

import logging

from ..lib.context import OpsCtx
from ..lib.luks import ensure_mounted, ensure_unlocked, is_mounted
from ..session import Phase, Session
from ._common import require_config

logger = logging.getLogger(__name__)


class InfrastructureStep:
    step_id = "30_infrastructure"
    reaches = Phase.INFRASTRUCTURE_READY

    def run(self, ctx: OpsCtx, session: Session) -> Session:
        blueprint, secrets = require_config(session)
        luks = blueprint.luks

        # Raises on failure, so the mount below only ever sees an open mapper.
        ensure_unlocked(ctx, luks.device, luks.mapper_name, secrets.luks_password)
        session = session.advance(session.phase, "30a_unlock", luks_unlocked=True)

        mounted = ensure_mounted(ctx, luks.mapper_name, luks.mount_point) or is_mounted(ctx, luks.mount_point)
        if not mounted:
            ctx.log.warning("%s is not mounted; continuing without it", luks.mount_point)
        return session.advance(self.reaches, self.step_id, luks_mounted=mounted)
