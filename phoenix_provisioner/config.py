from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LuksConfig:
    device: str
    mapper_name: str
    mount_point: str


@dataclass(frozen=True)
class SystemConfig:
    packages: List[str] = field(default_factory=list)
    pinned_packages: List[str] = field(default_factory=list)
    services: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class IdentityConfig:
    username: str
    shell: str = ""


@dataclass(frozen=True)
class StowConfig:
    source_dir: str = ""
    target_dir: str = ""
    packages: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RepoConfig:
    url: str
    dest: str


@dataclass(frozen=True)
class SymlinkConfig:
    src: str
    dest: str


@dataclass(frozen=True)
class UserSpaceConfig:
    stow: StowConfig = field(default_factory=StowConfig)
    repos: List[RepoConfig] = field(default_factory=list)
    symlinks: List[SymlinkConfig] = field(default_factory=list)


@dataclass(frozen=True)
class Blueprint:
    """The declarative restoration plan (phoenix.yml)."""

    version: str
    luks: LuksConfig
    identity: IdentityConfig
    system: SystemConfig = field(default_factory=SystemConfig)
    userspace: UserSpaceConfig = field(default_factory=UserSpaceConfig)


@dataclass(frozen=True)
class Secrets:
    luks_password: str = field(repr=False)


def _read_yaml(path: str, what: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"{what} file not found at: {path}")

    try:
        import yaml  # type: ignore
    except Exception as e:  # pragma: no cover
        raise RuntimeError(f"PyYAML is required to read the {what} file") from e

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to parse {what} file {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"{what} file must contain a mapping/object: {path}")
    return raw


def _section(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{key} must be a mapping")
    return value


def _str(raw: Dict[str, Any], key: str, where: str) -> str:
    value = raw.get(key)
    if value is None:
        return ""
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise ConfigError(f"{where}.{key} must be a string")
    return str(value).strip()


def _str_list(raw: Dict[str, Any], key: str, where: str) -> List[str]:
    value = raw.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{where}.{key} must be a list of strings")
    return [v.strip() for v in value if v.strip()]


def _pairs(raw: Dict[str, Any], key: str, where: str, a: str, b: str) -> List[Tuple[str, str]]:
    value = raw.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"{where}.{key} must be a list")
    out: List[Tuple[str, str]] = []
    for i, item in enumerate(value):
        if not isinstance(item, dict):
            raise ConfigError(f"{where}.{key}[{i}] must be a mapping")
        first = _str(item, a, f"{where}.{key}[{i}]")
        second = _str(item, b, f"{where}.{key}[{i}]")
        if not first or not second:
            raise ConfigError(f"{where}.{key}[{i}] requires both {a} and {b}")
        out.append((first, second))
    return out


def parse_blueprint(raw: Dict[str, Any]) -> Blueprint:
    version = _str(raw, "version", "blueprint")
    if not version:
        raise ConfigError("version field is required")

    infra = _section(raw, "infrastructure")
    luks_raw = _section(infra, "luks")
    luks = LuksConfig(
        device=_str(luks_raw, "device", "infrastructure.luks"),
        mapper_name=_str(luks_raw, "mapper_name", "infrastructure.luks"),
        mount_point=_str(luks_raw, "mount_point", "infrastructure.luks"),
    )
    for name in ("device", "mapper_name", "mount_point"):
        if not getattr(luks, name):
            raise ConfigError(f"infrastructure.luks.{name} is required")

    ident_raw = _section(raw, "identity")
    identity = IdentityConfig(
        username=_str(ident_raw, "username", "identity"),
        shell=_str(ident_raw, "shell", "identity"),
    )
    if not identity.username:
        raise ConfigError("identity.username is required")

    sys_raw = _section(raw, "system")
    system = SystemConfig(
        packages=_str_list(sys_raw, "packages", "system"),
        pinned_packages=_str_list(sys_raw, "pinned_packages", "system"),
        services=_str_list(sys_raw, "services", "system"),
    )

    us_raw = _section(raw, "userspace")
    stow_raw = _section(us_raw, "stow")
    userspace = UserSpaceConfig(
        stow=StowConfig(
            source_dir=_str(stow_raw, "source_dir", "userspace.stow"),
            target_dir=_str(stow_raw, "target_dir", "userspace.stow"),
            packages=_str_list(stow_raw, "packages", "userspace.stow"),
        ),
        repos=[RepoConfig(url=u, dest=d) for u, d in _pairs(us_raw, "repos", "userspace", "url", "dest")],
        symlinks=[SymlinkConfig(src=s, dest=d) for s, d in _pairs(us_raw, "symlinks", "userspace", "src", "dest")],
    )
    if userspace.stow.packages and not (userspace.stow.source_dir and userspace.stow.target_dir):
        raise ConfigError("userspace.stow.source_dir and target_dir are required when packages are listed")

    return Blueprint(version=version, luks=luks, identity=identity, system=system, userspace=userspace)


def load_blueprint(path: str) -> Blueprint:
    logger.info("Loading blueprint from: %s", path)
    bp = parse_blueprint(_read_yaml(path, "blueprint"))
    logger.info("Blueprint loaded successfully (version %s)", bp.version)
    return bp


def load_secrets(path: str) -> Secrets:
    logger.info("Loading secrets from local file: %s", path)
    raw = _read_yaml(path, "secrets")
    password = raw.get("luks_password")
    if not isinstance(password, str) or not password:
        raise ConfigError("invalid secrets file: 'luks_password' is missing or empty")
    return Secrets(luks_password=password)


def _overwrite(path: str) -> None:
    size = os.stat(path).st_size
    if size == 0:
        return
    with open(path, "r+b") as f:
        f.write(os.urandom(size))
        f.flush()
        os.fsync(f.fileno())


def destroy_secrets_file(path: str) -> bool:
    """Overwrite the secrets file with random bytes, then unlink it.

    Failures are logged, not raised: the secrets have already been read
    and the run should proceed. Returns True if the file is gone.
    """

    logger.info("Destroying secrets file: %s", path)
    try:
        _overwrite(path)
        logger.info("Secrets file overwritten with random data")
    except OSError as e:
        logger.warning("Failed to overwrite secrets file: %s", e)

    try:
        os.remove(path)
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.warning("Failed to delete secrets file: %s", e)
        return False

    logger.info("Secrets file destroyed successfully")
    return True


def load_config_bundle(
    blueprint_path: str,
    secrets_path: str,
    *,
    destroy_secrets: bool = True,
) -> Tuple[Blueprint, Secrets]:
    """Load blueprint and secrets; the secrets file is destroyed once read."""

    blueprint = load_blueprint(blueprint_path)
    secrets = load_secrets(secrets_path)
    if destroy_secrets:
        destroy_secrets_file(secrets_path)
    return blueprint, secrets


def optional_path(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None
