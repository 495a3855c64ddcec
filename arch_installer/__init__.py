"""Arch Linux workstation installer.

Core design goals:
- One immutable configuration, settled before a single confirmation
- Explicit, forward-only phase sequence
- Destructive disk work only after confirmation; no rollback
- Second process inside the installed root, fed by one envelope file
- Centralized logging
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
