import importlib
import itertools
import os
import sys
import types
from collections.abc import Callable, Iterator

import pytest

_module_ids = itertools.count()


@pytest.fixture(autouse=True)
def set_log_level():
    os.environ['WEAKLISTEN_LOGGING_LEVEL'] = 'WARNING'
    importlib.import_module('weaklisten')


@pytest.fixture
def make_module() -> Iterator[Callable[[str], types.ModuleType]]:
    """Create throwaway importable modules standing in for separately loaded plugins."""
    # Only names are kept here so tests can unload and collect the modules themselves.
    created: list[str] = []

    def factory(source: str = '') -> types.ModuleType:
        module_name = f'weaklisten_test_plugin_{next(_module_ids)}'
        module = types.ModuleType(module_name)
        sys.modules[module_name] = module
        exec(compile(source, f'<{module_name}>', 'exec'), vars(module))
        created.append(module_name)
        return module

    yield factory

    for module_name in created:
        sys.modules.pop(module_name, None)
