# conftest.py
import pytest

from mysqltest.errors import BinaryNotFoundError
from mysqltest.utils import look_mysqld_path

# Same name as the pytest11 entry point, so an installed copy is not registered twice.
pytest_plugins = ["mysqltest.pytest_plugin"]


def pytest_addoption(parser):
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run tests marked as integration even when no mysqld is found",
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-integration"):
        return

    try:
        look_mysqld_path()
    except BinaryNotFoundError as e:
        reason = f"mysqld is not installed ({e}), use --run-integration to force"
    else:
        return

    skip_marker = pytest.mark.skip(reason=reason)
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_marker)
