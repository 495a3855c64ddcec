from __future__ import annotations


class InstallerError(RuntimeError):
    """Base class for fatal installer errors."""

    exit_code = 1
    kind = "fatal"


class PreflightError(InstallerError):
    """A precondition is unmet; nothing destructive has happened yet."""

    exit_code = 1
    kind = "preflight"


class UserAbort(PreflightError):
    kind = "aborted"


class DestructiveError(InstallerError):
    """Failure during or after partitioning; the disk may be inconsistent."""

    exit_code = 2
    kind = "destructive"


class ConfigurationError(InstallerError):
    """Failure while configuring the installed root (chroot phases)."""

    exit_code = 3
    kind = "configuration"


class InvalidTransition(InstallerError):
    exit_code = 4
    kind = "internal"
