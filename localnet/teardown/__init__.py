"""Process tree teardown."""

from .process_tree import (
    snapshot_process_table,
    build_children_index,
    termination_order,
    terminate_process_trees,
)

__all__ = [
    "snapshot_process_table",
    "build_children_index",
    "termination_order",
    "terminate_process_trees",
]
