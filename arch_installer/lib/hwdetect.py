from __future__ import annotations

import logging
import re
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .command import run_cmd
from .env import PATHS

logger = logging.getLogger(__name__)

_DISK_RE = re.compile(r"^/dev/(sd[a-z]+|nvme\d+n\d+|vd[a-z]+|mmcblk\d+)$")
_LINUX_FS = {"ext4", "btrfs", "xfs"}


@dataclass(frozen=True)
class DiskInfo:
    path: str
    size: str
    model: str

    @property
    def label(self) -> str:
        return " ".join(x for x in (self.path, self.size, self.model) if x)


def _read_text(path: Path) -> Optional[str]:
    try:
        txt = path.read_text(encoding="utf-8", errors="ignore").strip()
        return txt or None
    except OSError:
        return None


def read_mem_total_bytes(meminfo: str = PATHS.meminfo) -> int:
    """Total RAM from /proc/meminfo (MemTotal is reported in KiB)."""

    txt = _read_text(Path(meminfo)) or ""
    for line in txt.splitlines():
        if line.startswith("MemTotal:"):
            return int(line.split()[1]) * 1024
    raise RuntimeError(f"MemTotal not found in {meminfo}")


def list_disks() -> List[DiskInfo]:
    """Whole-disk block devices suitable as an install target, sorted by path."""

    r = run_cmd(["lsblk", "-dpno", "NAME,SIZE,MODEL"], check=False)
    disks: List[DiskInfo] = []
    for line in (r.stdout or "").splitlines():
        parts = line.split(None, 2)
        if not parts or not _DISK_RE.match(parts[0]):
            continue
        size = parts[1] if len(parts) > 1 else ""
        model = parts[2].strip() if len(parts) > 2 else ""
        disks.append(DiskInfo(path=parts[0], size=size, model=model))
    return sorted(disks, key=lambda d: d.path)


def _parse_pairs(line: str) -> dict:
    out = {}
    for token in shlex.split(line):
        key, _, value = token.partition("=")
        out[key] = value
    return out


def describe_disk(disk: str) -> str:
    """One-line partition summary shown under a disk in the selection menu."""

    r = run_cmd(["lsblk", "-Pno", "TYPE,FSTYPE,SIZE", disk], check=False)
    parts: List[str] = []
    has_ntfs = False
    has_linux = False
    for line in (r.stdout or "").splitlines():
        row = _parse_pairs(line)
        if row.get("TYPE") != "part":
            continue
        fstype = row.get("FSTYPE") or "raw"
        parts.append(f"{fstype}({row.get('SIZE', '?')})")
        if fstype == "ntfs":
            has_ntfs = True
        elif fstype in _LINUX_FS:
            has_linux = True

    if not parts:
        return "Empty (no partitions)"
    summary = " ".join(parts)
    if has_ntfs:
        return f"{summary}  Windows detected"
    if has_linux:
        return f"{summary}  Linux detected"
    return summary
