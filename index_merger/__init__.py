"""
index_merger package

Provides the CLI entrypoint (`python -m index_merger`) and the merge helpers
for combining platform package index feeds into one aggregate index.
"""

from .cli import main
from .merge import merge_indexes

__all__ = ["main", "merge_indexes"]
