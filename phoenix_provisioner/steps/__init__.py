from .step_10_resolve_identity import ResolveIdentityStep
from .step_20_load_config import LoadConfigStep
from .step_30_infrastructure import InfrastructureStep
from .step_40_system_state import SystemStateStep
from .step_50_user_space import UserSpaceStep

__all__ = [
    "ResolveIdentityStep",
    "LoadConfigStep",
    "InfrastructureStep",
    "SystemStateStep",
    "UserSpaceStep",
]
