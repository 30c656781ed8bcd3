from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .command import Executor
from .env import PATHS, Paths

logger = logging.getLogger("phoenix_provisioner")


@dataclass(frozen=True)
class OpsCtx:
    """What every primitive needs: a way to run commands and a place to log."""

    executor: Executor = field(default_factory=Executor)
    log: logging.Logger = logger
    paths: Paths = PATHS

    def logger(self, source: str) -> logging.Logger:
        return self.log.getChild(source)

    def mapper_path(self, mapper_name: str) -> str:
        return f"{self.paths.mapper_dir.rstrip('/')}/{mapper_name}"
