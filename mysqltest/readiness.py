"""
Waiting for a freshly spawned mysqld.

Readiness is checked in two phases. The launch phase only asks the OS whether
the process is alive, which catches a broken binary or configuration quickly.
The connection phase then polls with a trivial query until the server has
finished its own startup and recovery. Each phase has its own deadline; the
only early exits are success and an observed process exit.
"""

import time
from logging import getLogger

import mysql.connector

from .errors import ConnectTimeoutError, LaunchError, LaunchTimeoutError, SchemaCreateError
from .mysql_api import MySQLApi
from .process import MysqldProcess

logger = getLogger(__name__)

DEFAULT_DATABASE = 'test'


def _exited_error(process: MysqldProcess):
    return LaunchError(
        f'mysqld exited with code {process.returncode} before becoming ready, see {process.log_file}'
    )


def wait_for_launch(process: MysqldProcess, timeout=20.0, interval=1.0):
    deadline = time.monotonic() + timeout
    while True:
        if process.exited.is_set():
            raise _exited_error(process)
        if process.is_running():
            logger.debug(f'mysqld {process.pid} is running')
            return
        if time.monotonic() >= deadline:
            process.kill()
            raise LaunchTimeoutError(f'error: failed to launch mysqld (timeout after {timeout}s)')
        process.exited.wait(interval)


def wait_for_connection(process: MysqldProcess, probe, timeout=30.0, interval=1.0):
    """Call `probe()` every `interval` seconds until it stops raising."""
    deadline = time.monotonic() + timeout
    attempt = 0
    while True:
        if process.exited.is_set():
            raise _exited_error(process)
        attempt += 1
        try:
            probe()
            logger.info(f'mysqld {process.pid} is ready after {attempt} attempt(s)')
            return
        except (mysql.connector.Error, OSError) as e:
            last_error = e
            logger.debug(f'mysqld {process.pid} not ready yet: {e}')
        if time.monotonic() >= deadline:
            process.kill()
            raise ConnectTimeoutError(
                f'error: timeout reached before we could connect to database '
                f'({timeout}s, last error: {last_error})'
            )
        process.exited.wait(interval)


def ensure_database(api: MySQLApi, db_name=DEFAULT_DATABASE):
    try:
        api.create_database(db_name)
    except (mysql.connector.Error, OSError) as e:
        raise SchemaCreateError(f"failed to create database '{db_name}': {e}") from e
