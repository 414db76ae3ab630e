"""Test helper utilities for TaskTree tests.

Provides store-wide invariant checks shared by the service, board and
change feed tests.
"""

from tests.helpers.invariants import (
    assert_acyclic,
    assert_all_invariants,
    assert_dense,
    assert_depth_bound,
    assert_list_references,
    assert_path_consistency,
)

__all__ = [
    "assert_acyclic",
    "assert_all_invariants",
    "assert_dense",
    "assert_depth_bound",
    "assert_list_references",
    "assert_path_consistency",
]
