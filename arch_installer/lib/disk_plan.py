"""Partition layout planning.

Layout (UEFI only): EFI(1) + swap(2) + root(3) + home(4, rest of disk).
Everything here is pure; the provisioner executes the plan.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from ..config import DEFAULT_ROOT_SIZE, GIB, parse_size
from ..errors import PreflightError

MIN_SWAP_GIB = 8

EFI_TYPE = "ef00"
SWAP_TYPE = "8200"
LINUX_TYPE = "8300"


class WipeDecision(enum.Enum):
    WIPE = "yes"
    PRESERVE = "no"
    ASK = "ask"


@dataclass(frozen=True)
class PartitionSpec:
    index: int
    size_bytes: Optional[int]  # None = remainder of the disk
    type_code: str
    label: str
    fs_type: str
    recreate: bool = True

    @property
    def is_remainder(self) -> bool:
        return self.size_bytes is None


@dataclass(frozen=True)
class DiskLayoutPlan:
    disk: str
    partitions: Tuple[PartitionSpec, PartitionSpec, PartitionSpec, PartitionSpec]
    preserve_existing: bool = False

    def __post_init__(self) -> None:
        if len(self.partitions) != 4:
            raise ValueError("A layout plan has exactly 4 partition slots")
        if [p.index for p in self.partitions] != [1, 2, 3, 4]:
            raise ValueError("Partition slots must be ordered 1..4")
        home = self.partitions[3]
        if home.recreate == self.preserve_existing:
            raise ValueError("Partition 4 must be recreated unless it is preserved")

    @property
    def efi(self) -> PartitionSpec:
        return self.partitions[0]

    @property
    def swap(self) -> PartitionSpec:
        return self.partitions[1]

    @property
    def root(self) -> PartitionSpec:
        return self.partitions[2]

    @property
    def home(self) -> PartitionSpec:
        return self.partitions[3]

    def mutation_set(self) -> Tuple[int, ...]:
        return tuple(p.index for p in self.partitions if p.recreate)

    def fixed_bytes(self) -> int:
        return sum(p.size_bytes or 0 for p in self.partitions if p.recreate)

    def device(self, index: int) -> str:
        return partition_path(self.disk, index)

    def validate(self, home_is_block_device: bool) -> "DiskLayoutPlan":
        """A preserve plan is only valid if partition 4 really exists."""

        if self.preserve_existing and not home_is_block_device:
            raise PreflightError(
                f"Cannot keep /home: {self.device(4)} is not an existing block device"
            )
        return self


def partition_path(disk: str, n: int) -> str:
    """/dev/sda -> /dev/sda3, /dev/nvme0n1 -> /dev/nvme0n1p3, /dev/mmcblk0 -> /dev/mmcblk0p3."""

    # nvme/mmcblk/loop device names end in a digit and take a p infix
    if disk.endswith(tuple("0123456789")):
        return f"{disk}p{n}"
    return f"{disk}{n}"


def compute_swap_bytes(ram_bytes: int) -> int:
    """RAM rounded up to whole GiB, at least 8 GiB (enough to hibernate)."""

    ram_gib = math.ceil(ram_bytes / GIB) if ram_bytes > 0 else 0
    return max(MIN_SWAP_GIB, ram_gib) * GIB


def resolve_wipe_choice(existing_partition4_present: bool, user_wipe_choice: str = "") -> WipeDecision:
    choice = (user_wipe_choice or "").strip().lower()
    if choice == "yes":
        return WipeDecision.WIPE
    if choice == "no":
        return WipeDecision.PRESERVE
    if choice:
        raise PreflightError(f"Wipe choice must be yes or no, got {user_wipe_choice!r}")
    if existing_partition4_present:
        return WipeDecision.ASK
    return WipeDecision.WIPE


def plan(
    disk: str,
    ram_bytes: int,
    existing_partition4_present: bool,
    user_wipe_choice: str = "",
    *,
    efi_size: str = "1G",
    root_size: str = "",
    swap_override: str = "",
    fs_type: str = "ext4",
) -> DiskLayoutPlan:
    """Compute the 4-slot layout for `disk`.

    Capacity is not checked here: sgdisk rejects a layout that does not fit.
    """

    if not disk:
        raise PreflightError("No target disk selected")

    decision = resolve_wipe_choice(existing_partition4_present, user_wipe_choice)
    if decision is WipeDecision.ASK:
        raise PreflightError(
            f"{partition_path(disk, 4)} exists; decide whether to wipe it before planning"
        )
    preserve = decision is WipeDecision.PRESERVE

    efi_bytes = parse_size(efi_size)
    swap_bytes = parse_size(swap_override) if swap_override else compute_swap_bytes(ram_bytes)
    root_bytes = parse_size(root_size or DEFAULT_ROOT_SIZE)

    partitions = (
        PartitionSpec(1, efi_bytes, EFI_TYPE, "EFI", "vfat"),
        PartitionSpec(2, swap_bytes, SWAP_TYPE, "Swap", "swap"),
        PartitionSpec(3, root_bytes, LINUX_TYPE, "Root", fs_type),
        PartitionSpec(4, None, LINUX_TYPE, "Home", fs_type, recreate=not preserve),
    )
    return DiskLayoutPlan(disk=disk, partitions=partitions, preserve_existing=preserve)
