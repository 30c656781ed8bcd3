from __future__ import annotations

import logging
from typing import Callable, Optional, Tuple

from ..config import Blueprint, Secrets
from ..lib.context import OpsCtx
from ..session import Phase, Session

logger = logging.getLogger(__name__)

ConfigLoader = Callable[[], Tuple[Blueprint, Secrets]]


class LoadConfigStep:
    step_id = "20_load_config"
    reaches = Phase.CONFIG_LOADED

    def __init__(self, loader: ConfigLoader, dotfiles_archive: Optional[str] = None):
        self.loader = loader
        self.dotfiles_archive = dotfiles_archive

    def run(self, ctx: OpsCtx, session: Session) -> Session:
        blueprint, secrets = self.loader()

        if blueprint.identity.username != session.username:
            ctx.log.warning(
                "Blueprint identity %s differs from the real user %s; user-space work runs as %s",
                blueprint.identity.username,
                session.username,
                session.username,
            )

        return session.advance(
            self.reaches,
            self.step_id,
            blueprint=blueprint,
            secrets=secrets,
            luks_mapper_name=blueprint.luks.mapper_name,
            luks_mount_point=blueprint.luks.mount_point,
            dotfiles_archive=self.dotfiles_archive,
        )
