import pytest

from arch_installer.config import GIB
from arch_installer.errors import DestructiveError
from arch_installer.lib import disk_plan, storage
from arch_installer.lib.command import CommandError


def _provisioner(monkeypatch, fake_run, tmp_path, *, present=True):
    monkeypatch.setattr(storage, "run_cmd", fake_run)
    monkeypatch.setattr(storage, "is_block_device", lambda dev: present)
    monkeypatch.setattr(storage, "get_uuid", lambda dev: "1111-swap")
    return storage.DiskProvisioner(str(tmp_path / "mnt"), settle_retries=3, settle_interval=0, sleep=lambda s: None)


def _touches(cmd, dev):
    return dev in cmd


def test_preserve_never_formats_or_deletes_partition_four(monkeypatch, fake_run, tmp_path):
    prov = _provisioner(monkeypatch, fake_run, tmp_path)
    plan = disk_plan.plan("/dev/nvme0n1", 16 * GIB, True, "no")

    devices = prov.execute(plan)

    sgdisk = fake_run.commands("sgdisk")
    assert ["sgdisk", "-d", "1", "-d", "2", "-d", "3", "/dev/nvme0n1"] in sgdisk
    assert not any("--zap-all" in c for c in sgdisk)
    assert not any(a.startswith("4:") for c in sgdisk for a in c)
    mkfs = [c for c in fake_run.calls if c[0].startswith("mkfs") or c[0] == "mkswap"]
    assert len(mkfs) == 3
    assert not any(_touches(c, "/dev/nvme0n1p4") for c in mkfs)
    # the kept home is still mounted
    assert ["mount", "/dev/nvme0n1p4", f"{tmp_path}/mnt/home"] in fake_run.calls
    assert devices.home == "/dev/nvme0n1p4"
    assert devices.swap_uuid == "1111-swap"


def test_wipe_recreates_and_formats_all_four(monkeypatch, fake_run, tmp_path):
    prov = _provisioner(monkeypatch, fake_run, tmp_path)
    plan = disk_plan.plan("/dev/sda", 8 * GIB, True, "yes", fs_type="btrfs")

    prov.execute(plan)

    assert fake_run.calls[0] == ["sgdisk", "--zap-all", "/dev/sda"]
    creates = [c for c in fake_run.commands("sgdisk") if "-n" in c]
    assert [c[c.index("-n") + 1] for c in creates] == ["1:0:+1G", "2:0:+8G", "3:0:+128G", "4:0:0"]
    assert [c[c.index("-t") + 1] for c in creates] == ["1:ef00", "2:8200", "3:8300", "4:8300"]
    assert [c[c.index("-c") + 1] for c in creates] == ["1:EFI", "2:Swap", "3:Root", "4:Home"]
    assert ["mkfs.fat", "-F", "32", "/dev/sda1"] in fake_run.calls
    assert ["mkswap", "/dev/sda2"] in fake_run.calls
    assert ["mkfs.btrfs", "-f", "/dev/sda3"] in fake_run.calls
    assert ["mkfs.btrfs", "-f", "/dev/sda4"] in fake_run.calls


def test_mount_order_root_boot_home_then_swap(monkeypatch, fake_run, tmp_path):
    prov = _provisioner(monkeypatch, fake_run, tmp_path)
    prov.execute(disk_plan.plan("/dev/sda", 8 * GIB, False))

    mnt = f"{tmp_path}/mnt"
    tail = [c for c in fake_run.calls if c[0] in {"mount", "swapon"}]
    assert tail == [
        ["mount", "/dev/sda3", mnt],
        ["mount", "/dev/sda1", f"{mnt}/boot"],
        ["mount", "/dev/sda4", f"{mnt}/home"],
        ["swapon", "/dev/sda2"],
    ]


def test_partitioning_happens_before_formatting(monkeypatch, fake_run, tmp_path):
    prov = _provisioner(monkeypatch, fake_run, tmp_path)
    prov.execute(disk_plan.plan("/dev/sda", 8 * GIB, False))

    names = [c[0] for c in fake_run.calls]
    assert names.index("partprobe") > max(i for i, n in enumerate(names) if n == "sgdisk")
    assert names.index("mkfs.fat") > names.index("partprobe")
    assert names.index("mount") > names.index("mkswap")


def test_missing_device_nodes_time_out(monkeypatch, fake_run, tmp_path):
    prov = _provisioner(monkeypatch, fake_run, tmp_path, present=False)
    with pytest.raises(DestructiveError, match="Device nodes did not appear"):
        prov.execute(disk_plan.plan("/dev/sda", 8 * GIB, False))
    assert not any(c[0].startswith("mkfs") for c in fake_run.calls)


def test_tool_failure_is_destructive(monkeypatch, tmp_path):
    def failing(argv, **kwargs):
        raise CommandError(argv, 4, "Could not create partition 3")

    prov = _provisioner(monkeypatch, failing, tmp_path)
    with pytest.raises(DestructiveError, match="Disk provisioning failed on /dev/sda"):
        prov.execute(disk_plan.plan("/dev/sda", 8 * GIB, False))


def test_devices_round_trip_through_dict():
    devices = storage.ProvisionedDevices(efi="/dev/sda1", swap="/dev/sda2", root="/dev/sda3", home="/dev/sda4", swap_uuid="abc")
    assert storage.ProvisionedDevices.from_dict(devices.to_dict()) == devices
