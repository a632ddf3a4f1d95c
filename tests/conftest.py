"""Shared test fixtures and utilities for mysqltest tests"""

import os
import shutil
import stat
import time

import pytest

from mysqltest.config import MysqldConfig
from mysqltest.guards import GuardStack

HELP_WITH_INITIALIZE_INSECURE = """\
mysqld  Ver 8.0.36 for Linux on x86_64 (MySQL Community Server - GPL)
  --initialize        Create the default database and exit.
  --initialize-insecure
                      Create the default database and exit. Create a super
                      user with empty password.
"""

HELP_WITHOUT_INITIALIZE_INSECURE = """\
mysqld  Ver 5.6.51 for Linux on x86_64 (MySQL Community Server (GPL))
  --bootstrap         Used by mysql installation scripts.
"""

FAKE_MYSQLD_TEMPLATE = """\
#!/bin/sh
case "$*" in
  *--help*)
    cat <<'HELP'
{help}HELP
    exit {help_exit}
    ;;
  *--initialize-insecure*)
    echo "$@" >> "$0.calls"
    defaults_file="${{1#--defaults-file=}}"
    datadir=$(sed -n 's/^datadir=//p' "$defaults_file")
    {bootstrap}
    ;;
esac
echo "$@" >> "$0.calls"
{run}
"""

FAKE_INSTALL_DB_TEMPLATE = """\
#!/bin/sh
echo "$@" >> "$0.calls"
defaults_file="${{1#--defaults-file=}}"
datadir=$(sed -n 's/^datadir=//p' "$defaults_file")
ls "$datadir" >> "$0.listing"
{bootstrap}
"""

BOOTSTRAP_OK = 'mkdir -p "$datadir/mysql"; echo "bootstrap done"; exit 0'
BOOTSTRAP_FAIL = 'echo "[ERROR] --initialize specified but the data directory has files in it." >&2; exit 1'

SCRIPT_TOOLS = ("cat", "sed", "mkdir", "sleep", "ls")

RUN_FOREVER = """\
echo "mysqld: ready for connections."
echo "fake mysqld stderr" >&2
exec sleep 60"""
RUN_EXIT = """\
echo "[ERROR] Aborting" >&2
exit 3"""


def write_script(path, content):
    with open(path, 'w') as f:
        f.write(content)
    os.chmod(path, os.stat(path).st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


def read_calls(script):
    calls_file = f'{script}.calls'
    if not os.path.exists(calls_file):
        return []
    with open(calls_file) as f:
        return [line.split() for line in f.read().splitlines()]


def assert_wait(condition, max_wait_time=20.0, retry_interval=0.05):
    max_time = time.time() + max_wait_time
    while time.time() < max_time:
        if condition():
            return
        time.sleep(retry_interval)
    assert condition()


def pid_exists(pid):
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    # A killed child stays a zombie until it is reaped, treat that as gone.
    try:
        with open(f'/proc/{pid}/stat') as f:
            return f.read().split(')')[-1].split()[0] != 'Z'
    except OSError:
        return True


@pytest.fixture
def bin_dir(tmp_path, monkeypatch):
    """A directory for fake binaries.

    PATH is replaced by this directory plus links to the few utilities the
    fake scripts use, so a real mysqld or mysql_install_db never leaks in.
    """
    path = tmp_path / "bin"
    path.mkdir()
    tools = tmp_path / "tools"
    tools.mkdir()
    for tool in SCRIPT_TOOLS:
        found = shutil.which(tool)
        if found is not None:
            (tools / tool).symlink_to(found)
    monkeypatch.setenv("PATH", f"{path}{os.pathsep}{tools}")
    return path


@pytest.fixture
def fake_mysqld(bin_dir):
    """Install a fake `mysqld` on PATH and return its path."""
    def factory(
        help=HELP_WITH_INITIALIZE_INSECURE,
        help_exit=0,
        bootstrap=BOOTSTRAP_OK,
        run=RUN_FOREVER,
    ):
        return write_script(bin_dir / 'mysqld', FAKE_MYSQLD_TEMPLATE.format(
            help=help, help_exit=help_exit, bootstrap=bootstrap, run=run,
        ))
    return factory


@pytest.fixture
def fake_install_db(bin_dir):
    def factory(bootstrap=BOOTSTRAP_OK):
        return write_script(
            bin_dir / 'mysql_install_db',
            FAKE_INSTALL_DB_TEMPLATE.format(bootstrap=bootstrap),
        )
    return factory


@pytest.fixture
def guards():
    stack = GuardStack()
    yield stack
    stack.run_all()


@pytest.fixture
def resolved_config(tmp_path, fake_mysqld):
    """A resolved-looking config under tmp_path that needs no real binaries."""
    mysqld = fake_mysqld()
    base_dir = tmp_path / 'mysqld'
    return MysqldConfig(
        base_dir=str(base_dir),
        tmp_dir=str(base_dir / 'tmp'),
        data_dir=str(base_dir / 'var'),
        socket=str(base_dir / 'tmp' / 'mysql.sock'),
        pid_file=str(base_dir / 'tmp' / 'mysqld.pid'),
        mysqld=mysqld,
        initialize_insecure=True,
        launch_timeout=2.0,
        connect_timeout=1.0,
        poll_interval=0.1,
    )


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "integration: mark test as integration test (needs mysqld)")
    config.addinivalue_line("markers", "unit: mark test as unit test")
