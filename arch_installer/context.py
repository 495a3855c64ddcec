from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Optional

from .config import InstallConfig
from .errors import ConfigurationError
from .lib.disk_plan import DiskLayoutPlan
from .lib.geo import Location
from .lib.storage import ProvisionedDevices
from .prompts import Prompter


@dataclass
class InstallContext:
    """What the phases of one process share.

    The config may be refined (dataclasses.replace) until the confirmation
    checkpoint; after confirm() it is fixed for the rest of the run.
    Collaborators are set by the orchestrator and replaced in tests.
    """

    config: InstallConfig
    prompter: Prompter
    location: Location = field(default_factory=Location)
    plan: Optional[DiskLayoutPlan] = None
    devices: Optional[ProvisionedDevices] = None
    confirmed: bool = False

    probe: Any = None
    resolver: Any = None
    provisioner: Any = None
    boundary: Any = None

    def update_config(self, **changes: Any) -> InstallConfig:
        if self.confirmed:
            raise ConfigurationError(f"Configuration is fixed after confirmation (tried to change {', '.join(changes)})")
        self.config = dataclasses.replace(self.config, **changes)
        return self.config

    def confirm(self) -> None:
        self.confirmed = True
        self.prompter.lock()

    def require_devices(self) -> ProvisionedDevices:
        if self.devices is None:
            raise ConfigurationError("No provisioned devices; provisioning has not run")
        return self.devices
