"""pytest fixtures providing disposable mysqld instances."""

import pytest

from .config import new_config
from .errors import BinaryNotFoundError
from .mysqld import new_mysqld


@pytest.fixture
def mysqld_factory():
    """Build started instances from a config, all stopped at teardown."""
    instances = []

    def factory(config=None):
        try:
            mysqld = new_mysqld(config if config is not None else new_config())
        except BinaryNotFoundError as e:
            pytest.skip(f'mysqld is not available: {e}')
        instances.append(mysqld)
        return mysqld

    yield factory

    for mysqld in instances:
        mysqld.stop()


@pytest.fixture
def mysqld(mysqld_factory):
    return mysqld_factory()
