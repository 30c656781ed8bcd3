from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Paths:
    mapper_dir: str = "/dev/mapper"
    home_root: str = "/home"
    blueprint_default: str = "phoenix.yml"
    log_default: str = "/var/log/phoenix-provision.log"


PATHS = Paths()

# dnf4 ships versionlock as a separate plugin package.
VERSIONLOCK_PLUGIN = "python3-dnf-plugin-versionlock"

HOME_MODE = 0o755
