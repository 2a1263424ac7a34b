"""Persistence port and adapters.

Repositories are injected per component; nothing here holds a global
client. ``learnpath.persistence.registry`` wires one repository per entity.
"""

from .batch import Batch, BatchLoader
from .memory import InMemoryRepository
from .port import EntityRepository, Filter, FilterOp, Page, Sort, eq, gte, in_, lte
from .retry import ReadPolicy


__all__ = [
    "Batch",
    "BatchLoader",
    "EntityRepository",
    "Filter",
    "FilterOp",
    "InMemoryRepository",
    "Page",
    "ReadPolicy",
    "Sort",
    "eq",
    "gte",
    "in_",
    "lte",
]
