from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..config import format_size
from ..errors import DestructiveError
from .block import get_uuid, is_block_device
from .command import CommandError, run_cmd
from .disk_plan import DiskLayoutPlan, PartitionSpec
from .retry import retry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProvisionedDevices:
    efi: str
    swap: str
    root: str
    home: Optional[str]
    swap_uuid: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProvisionedDevices":
        return cls(
            efi=str(data["efi"]),
            swap=str(data["swap"]),
            root=str(data["root"]),
            home=data.get("home") or None,
            swap_uuid=str(data.get("swap_uuid") or ""),
        )


_MKFS = {
    "ext4": ["mkfs.ext4", "-F"],
    "btrfs": ["mkfs.btrfs", "-f"],
}


class DiskProvisioner:
    """Executes a DiskLayoutPlan: partition, format, mount, swap on.

    There is no rollback. A failure leaves the disk in whatever state the
    last successful command produced; the next run re-plans from scratch.
    """

    def __init__(
        self,
        mount_point: str,
        *,
        settle_retries: int = 20,
        settle_interval: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.mount_point = mount_point
        self.settle_retries = settle_retries
        self.settle_interval = settle_interval
        self._sleep = sleep

    def execute(self, plan: DiskLayoutPlan) -> ProvisionedDevices:
        disk = plan.disk
        logger.info(
            "Provisioning disk=%s preserve_home=%s mutate=%s",
            disk,
            plan.preserve_existing,
            ",".join(str(i) for i in plan.mutation_set()),
        )
        try:
            self._clear_table(plan)
            self._create_partitions(plan)
            self._wait_for_nodes(plan)
            self._format(plan)
            self._mount(plan)
            swap_uuid = get_uuid(plan.device(2))
        except (CommandError, RuntimeError, OSError) as e:
            if isinstance(e, DestructiveError):
                raise
            raise DestructiveError(f"Disk provisioning failed on {disk}: {e}") from e

        devices = ProvisionedDevices(
            efi=plan.device(1),
            swap=plan.device(2),
            root=plan.device(3),
            home=plan.device(4),
            swap_uuid=swap_uuid,
        )
        logger.info(
            "Partitions: EFI=%s SWAP=%s ROOT=%s HOME=%s (swap UUID %s)",
            devices.efi,
            devices.swap,
            devices.root,
            devices.home,
            devices.swap_uuid,
        )
        return devices

    # ---------- partitioning ----------

    def _clear_table(self, plan: DiskLayoutPlan) -> None:
        if plan.preserve_existing:
            logger.info("Deleting partitions 1-3, preserving partition 4 (/home)")
            argv = ["sgdisk"]
            for i in plan.mutation_set():
                argv += ["-d", str(i)]
            # Missing entries are fine here; the table may be partly empty.
            run_cmd([*argv, plan.disk], check=False)
        else:
            logger.info("Wiping entire partition table on %s", plan.disk)
            run_cmd(["sgdisk", "--zap-all", plan.disk])

    def _create_partitions(self, plan: DiskLayoutPlan) -> None:
        for spec in plan.partitions:
            if not spec.recreate:
                continue
            run_cmd(["sgdisk", *self._sgdisk_args(spec), plan.disk])

    @staticmethod
    def _sgdisk_args(spec: PartitionSpec) -> List[str]:
        end = "0" if spec.is_remainder else f"+{format_size(spec.size_bytes or 0)}"
        i = spec.index
        return [
            "-n",
            f"{i}:0:{end}",
            "-t",
            f"{i}:{spec.type_code}",
            "-c",
            f"{i}:{spec.label}",
        ]

    def _wait_for_nodes(self, plan: DiskLayoutPlan) -> None:
        run_cmd(["partprobe", plan.disk])
        # NVMe can be slow to publish nodes.
        run_cmd(["udevadm", "settle"], check=False)

        expected = [plan.device(i) for i in (1, 2, 3, 4)]
        result = retry(
            self.settle_retries,
            self.settle_interval,
            lambda: all(is_block_device(dev) for dev in expected),
            what="partition device nodes",
            sleep=self._sleep,
        )
        if not result.ok:
            missing = [dev for dev in expected if not is_block_device(dev)]
            raise DestructiveError(
                f"Device nodes did not appear after {result.attempts} checks: {', '.join(missing)}"
            )

    # ---------- formatting ----------

    def _format(self, plan: DiskLayoutPlan) -> None:
        for spec in plan.partitions:
            dev = plan.device(spec.index)
            if not spec.recreate:
                logger.info("Keeping existing filesystem on %s (not formatting)", dev)
                continue
            run_cmd(self._mkfs_argv(spec, dev))

    @staticmethod
    def _mkfs_argv(spec: PartitionSpec, dev: str) -> List[str]:
        if spec.fs_type == "vfat":
            return ["mkfs.fat", "-F", "32", dev]
        if spec.fs_type == "swap":
            return ["mkswap", dev]
        base = _MKFS.get(spec.fs_type)
        if base is None:
            raise DestructiveError(f"Unsupported filesystem: {spec.fs_type}")
        return [*base, dev]

    # ---------- mounting ----------

    def _mount(self, plan: DiskLayoutPlan) -> None:
        # Root first: the other mount points live inside it.
        mnt = self.mount_point
        Path(mnt).mkdir(parents=True, exist_ok=True)
        run_cmd(["mount", plan.device(3), mnt])

        (Path(mnt) / "boot").mkdir(parents=True, exist_ok=True)
        run_cmd(["mount", plan.device(1), f"{mnt}/boot"])

        (Path(mnt) / "home").mkdir(parents=True, exist_ok=True)
        run_cmd(["mount", plan.device(4), f"{mnt}/home"])

        run_cmd(["swapon", plan.device(2)])
        logger.info("All partitions mounted under %s", mnt)
