from __future__ import annotations

import logging

from ..lib.account import ensure_login_shell
from ..lib.context import OpsCtx
from ..lib.pkg import ensure_packages, ensure_pinned_packages
from ..lib.services import ensure_services
from ..session import Phase, Session
from ._common import require_config

logger = logging.getLogger(__name__)


class SystemStateStep:
    step_id = "40_system_state"
    reaches = Phase.SYSTEM_STATE_READY

    def run(self, ctx: OpsCtx, session: Session) -> Session:
        blueprint, _ = require_config(session)
        system = blueprint.system

        # Independent of each other; the fixed order keeps logs predictable.
        ensure_packages(ctx, system.packages)
        ensure_pinned_packages(ctx, system.pinned_packages)
        ensure_services(ctx, system.services)
        if blueprint.identity.shell:
            ensure_login_shell(ctx, blueprint.identity.username, blueprint.identity.shell)

        return session.advance(self.reaches, self.step_id)
