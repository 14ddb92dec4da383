"""Every module of the package imports cleanly."""

import importlib
import pkgutil
import typing

import pytest

import billing_cache
from billing_cache.infrastructure.cache.cache_protocol import KeyValueBackend

MODULES = sorted(
    info.name for info in pkgutil.walk_packages(billing_cache.__path__, prefix="billing_cache.")
)


@pytest.mark.parametrize("module_name", MODULES)
def test_module_imports(module_name: str) -> None:
    assert importlib.import_module(module_name) is not None


def test_backend_protocol_annotations_use_builtin_set() -> None:
    hints = typing.get_type_hints(KeyValueBackend.smembers)
    assert hints["return"] == set[str]
