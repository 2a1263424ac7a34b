"""Every module of the package imports cleanly."""

import importlib
import pkgutil

import pytest

import learnpath


MODULES = sorted(
    name
    for _, name, _ in pkgutil.walk_packages(learnpath.__path__, prefix="learnpath.")
)


@pytest.mark.parametrize("module_name", MODULES)
def test_module_imports(module_name: str) -> None:
    importlib.import_module(module_name)


def test_repositories_expose_full_port() -> None:
    from learnpath.persistence.cassandra import CassandraRepository
    from learnpath.persistence.memory import InMemoryRepository

    for repository_cls in (CassandraRepository, InMemoryRepository):
        for method in ("get_by_id", "get_many", "list", "count", "create_if_absent"):
            assert callable(getattr(repository_cls, method))
