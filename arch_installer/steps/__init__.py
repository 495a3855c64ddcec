from .step_10_preflight import PreflightStep
from .step_20_configure import ConfigureStep
from .step_30_confirm import ConfirmStep
from .step_40_provision import ProvisionStep
from .step_50_base_install import BaseInstallStep
from .step_60_chroot_config import ConfigureSystemStep, CrossBoundaryStep
from .step_70_profile import ProfileStep
from .step_80_post_fixup import PostFixupStep
from .step_90_finalize import FinalizeStep

__all__ = [
    "PreflightStep",
    "ConfigureStep",
    "ConfirmStep",
    "ProvisionStep",
    "BaseInstallStep",
    "CrossBoundaryStep",
    "ConfigureSystemStep",
    "ProfileStep",
    "PostFixupStep",
    "FinalizeStep",
]
