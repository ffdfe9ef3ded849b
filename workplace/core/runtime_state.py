"""Process-wide runtime flags shared across modules."""
from __future__ import annotations

_cleanup_sweep_active = False


def set_cleanup_sweep_active(active: bool) -> None:
    global _cleanup_sweep_active
    _cleanup_sweep_active = active


def is_cleanup_sweep_active() -> bool:
    return _cleanup_sweep_active
