"""CLI command implementations for devrun.

This package contains the implementation of each CLI command,
separated from the CLI framework setup in cli.py.
"""

from .init import init
from .lock import lock_app, lock_clear, lock_status
from .run import android, ios

__all__ = [
    "android",
    "init",
    "ios",
    "lock_app",
    "lock_clear",
    "lock_status",
]
