"""Backup and restore modules."""

from .create import Snapshot, create_snapshot
from .restore import (
    find_snapshot, list_snapshots, print_snapshots, restore_snapshot, show_snapshot,
)
