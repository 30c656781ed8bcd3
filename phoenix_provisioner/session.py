from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple

from .config import Blueprint, Secrets


class Phase(str, Enum):
    START = "start"
    IDENTITY_RESOLVED = "identity_resolved"
    CONFIG_LOADED = "config_loaded"
    INFRASTRUCTURE_READY = "infrastructure_ready"
    SYSTEM_STATE_READY = "system_state_ready"
    USER_SPACE_READY = "user_space_ready"
    COMPLETE = "complete"
    ABORTED = "aborted"


@dataclass(frozen=True)
class Session:
    """Everything one provisioning run has learned so far.

    Stages never mutate a Session; they return an updated copy. Nothing here
    is written to disk.
    """

    phase: Phase = Phase.START
    completed_steps: Tuple[str, ...] = ()

    # Real user (resolved at run time)
    username: str = ""
    uid: int = -1
    gid: int = -1
    user_home: str = ""

    # Infrastructure
    luks_mapper_name: str = ""
    luks_mount_point: str = ""
    luks_unlocked: bool = False
    luks_mounted: bool = False

    # User space, after ~ expansion
    stow_source_dir: str = ""
    stow_target_dir: str = ""
    dotfiles_archive: Optional[str] = None

    # Loaded once by the config step
    blueprint: Optional[Blueprint] = None
    secrets: Optional[Secrets] = field(default=None, repr=False)

    def advance(self, phase: Phase, step_id: Optional[str] = None, **changes) -> "Session":
        steps = self.completed_steps + (step_id,) if step_id else self.completed_steps
        return replace(self, phase=phase, completed_steps=steps, **changes)

    def aborted(self) -> "Session":
        return replace(self, phase=Phase.ABORTED)
