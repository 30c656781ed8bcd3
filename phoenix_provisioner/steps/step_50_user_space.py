from __future__ import annotations

import logging

from ..lib.context import OpsCtx
from ..lib.dotfiles import ensure_symlink, extract_archive, stow_packages
from ..lib.paths import expand_path
from ..lib.repos import clone_repo
from ..session import Phase, Session
from ._common import require_config, require_user

logger = logging.getLogger(__name__)


class UserSpaceStep:
    step_id = "50_user_space"
    reaches = Phase.USER_SPACE_READY

    def run(self, ctx: OpsCtx, session: Session) -> Session:
        blueprint, _ = require_config(session)
        username = require_user(session)
        home = session.user_home
        userspace = blueprint.userspace

        source_dir = expand_path(userspace.stow.source_dir, home)
        target_dir = expand_path(userspace.stow.target_dir, home)
        session = session.advance(
            session.phase,
            "50a_expand_paths",
            stow_source_dir=source_dir,
            stow_target_dir=target_dir,
        )

        # The archive fills the stow source, so it must land before stow runs.
        if session.dotfiles_archive:
            if not source_dir:
                ctx.log.warning("Dotfiles archive given but userspace.stow.source_dir is empty; skipping extraction")
            else:
                extract_archive(ctx, session.dotfiles_archive, source_dir, username)

        stow_packages(ctx, source_dir, target_dir, userspace.stow.packages, username)

        for link in userspace.symlinks:
            ensure_symlink(ctx, expand_path(link.src, home), expand_path(link.dest, home), username)

        for repo in userspace.repos:
            clone_repo(ctx, repo.url, expand_path(repo.dest, home), username)

        return session.advance(self.reaches, self.step_id)
