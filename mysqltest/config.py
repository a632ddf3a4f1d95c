"""
Test mysqld configuration

This module describes one disposable mysqld instance and resolves a partial
description into a complete one: working directories, networking, and the
location of the server and bootstrap binaries.

Classes:
    MysqldConfig: declarative description of one instance

Functions:
    new_config: default configuration (unix socket only, full auto start)
    resolve_config: fill defaults, allocate a port, locate binaries

Key Features:
    - YAML-based configuration loading
    - Type validation and error handling
    - Preserve-on-teardown switch through the TEST_MYSQLD_PRESERVE variable
"""

import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass, fields
from logging import getLogger

import yaml

from .errors import BinaryNotFoundError, PathError
from .utils import find_free_port, look_mysqld_path, parse_bool

logger = getLogger(__name__)

PRESERVE_ENV = 'TEST_MYSQLD_PRESERVE'

SOCKET_NAME = 'mysql.sock'
PID_FILE_NAME = 'mysqld.pid'
INITIALIZE_INSECURE = '--initialize-insecure'

AUTO_START_MANUAL = 0
AUTO_START_LAUNCH = 1
AUTO_START_FULL = 2


def stype(obj):
    """Get the simple type name of an object.

    Example:
        >>> stype([1, 2, 3])
        'list'
    """
    return type(obj).__name__


@dataclass
class MysqldConfig:
    """Configuration of one test mysqld instance.

    Every path left empty is derived from `base_dir` by `resolve_config()`.

    Attributes:
        base_dir: private root of the instance (temporary directory if empty)
        bind_address: address to listen on when networking is enabled
        copy_data_from: seed data directory copied into `data_dir`
        data_dir: mysqld datadir (default: <base_dir>/var)
        pid_file: mysqld pid file (default: <tmp_dir>/mysqld.pid)
        port: TCP port, allocated when unset and networking is enabled
        skip_networking: listen on the unix socket only
        socket: unix socket path (default: <tmp_dir>/mysql.sock)
        tmp_dir: temporary directory (default: <base_dir>/tmp)
        auto_start: 0 manual, 1 check and start, 2 setup and start
        mysql_install_db: path of the mysql_install_db bootstrap tool
        mysqld: path of the server binary
        initialize_insecure: mysqld supports --initialize-insecure
        launch_timeout: seconds to wait for the process to show up
        connect_timeout: seconds to wait for the server to accept queries
        poll_interval: seconds between readiness checks

    Example:
        config = MysqldConfig(skip_networking=False, port=13306)
    """
    base_dir: str = ''
    bind_address: str = ''
    copy_data_from: str = ''
    data_dir: str = ''
    pid_file: str = ''
    port: int = 0
    skip_networking: bool = True
    socket: str = ''
    tmp_dir: str = ''

    auto_start: int = AUTO_START_FULL
    mysql_install_db: str = ''
    mysqld: str = ''
    initialize_insecure: bool = False

    launch_timeout: float = 20.0
    connect_timeout: float = 30.0
    poll_interval: float = 1.0

    def validate(self):
        for name in (
            'base_dir', 'bind_address', 'copy_data_from', 'data_dir', 'pid_file',
            'socket', 'tmp_dir', 'mysql_install_db', 'mysqld',
        ):
            value = getattr(self, name)
            if not isinstance(value, str):
                raise ValueError(f'{name} should be string and not {stype(value)}')

        if not isinstance(self.port, int) or isinstance(self.port, bool):
            raise ValueError(f'port should be int and not {stype(self.port)}')

        for name in ('skip_networking', 'initialize_insecure'):
            value = getattr(self, name)
            if not isinstance(value, bool):
                raise ValueError(f'{name} should be bool and not {stype(value)}')

        if self.auto_start not in (AUTO_START_MANUAL, AUTO_START_LAUNCH, AUTO_START_FULL):
            raise ValueError(f'auto_start should be 0, 1 or 2 and not {self.auto_start!r}')

        for name in ('launch_timeout', 'connect_timeout', 'poll_interval'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f'{name} should be a number and not {stype(value)}')
            if value <= 0:
                raise ValueError(f'{name} should be positive')

    @classmethod
    def load(cls, settings_file):
        with open(settings_file, 'r') as f:
            data = yaml.safe_load(f) or {}

        known = {f.name for f in fields(cls)}
        unsupported = [key for key in data if key not in known]
        if unsupported:
            raise ValueError(f'Unsupported config options: {unsupported}')

        config = cls(**data)
        config.validate()
        return config


def new_config():
    return MysqldConfig(auto_start=AUTO_START_FULL, skip_networking=True)


def is_preserve_requested():
    return parse_bool(os.environ.get(PRESERVE_ENV))


def _resolve_base_dir(config: MysqldConfig, guards):
    if config.base_dir:
        try:
            config.base_dir = os.path.abspath(config.base_dir)
        except (OSError, ValueError) as e:
            raise PathError(f'failed to normalize base_dir {config.base_dir!r}: {e}') from e
    else:
        try:
            config.base_dir = tempfile.mkdtemp(prefix='mysqltest')
        except OSError as e:
            raise PathError(f'failed to create temporary directory: {e}') from e
        logger.info(f'created base directory {config.base_dir}')
        if is_preserve_requested():
            logger.info(f'{PRESERVE_ENV} is set, {config.base_dir} will be kept')
        else:
            guards.remove_tree(config.base_dir)

    # Follow a single level of symlink, relative targets are relative to the link.
    if os.path.islink(config.base_dir):
        try:
            target = os.readlink(config.base_dir)
        except OSError as e:
            raise PathError(f'failed to readlink base_dir {config.base_dir}: {e}') from e
        config.base_dir = os.path.normpath(
            os.path.join(os.path.dirname(config.base_dir), target)
        )


def _probe_initialize_insecure(mysqld):
    cmd = [mysqld, '--help', '--verbose']
    try:
        res = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.DEVNULL, check=True)
    except (OSError, subprocess.CalledProcessError) as e:
        raise BinaryNotFoundError(f"failed to execute '{' '.join(cmd)}': {e}") from e
    return INITIALIZE_INSECURE in res.stdout.decode('utf-8', errors='replace')


def resolve_config(config: MysqldConfig, guards) -> MysqldConfig:
    """Fill every unset field of `config`.

    Cleanup actions for whatever gets created here (the temporary base
    directory) are registered on `guards`.
    """
    if config is None:
        config = new_config()
    config.validate()

    _resolve_base_dir(config, guards)

    if not config.tmp_dir:
        config.tmp_dir = os.path.join(config.base_dir, 'tmp')
    if not config.socket:
        config.socket = os.path.join(config.tmp_dir, SOCKET_NAME)
    if not config.data_dir:
        config.data_dir = os.path.join(config.base_dir, 'var')
    if not config.pid_file:
        config.pid_file = os.path.join(config.tmp_dir, PID_FILE_NAME)

    if not config.skip_networking:
        if not config.bind_address:
            config.bind_address = '127.0.0.1'
        if config.port <= 0:
            config.port = find_free_port(config.bind_address)
            logger.info(f'allocated port {config.port}')

    if not config.mysqld:
        config.mysqld = look_mysqld_path()
    logger.debug(f'using mysqld {config.mysqld}')

    # mysql_install_db is obsolete since MySQL 5.7.6, newer servers bootstrap themselves.
    config.initialize_insecure = _probe_initialize_insecure(config.mysqld)
    if not config.initialize_insecure and not config.mysql_install_db:
        install_db = shutil.which('mysql_install_db')
        if install_db is not None:
            config.mysql_install_db = install_db
        elif config.auto_start >= AUTO_START_FULL:
            raise BinaryNotFoundError(
                f'{config.mysqld} does not support {INITIALIZE_INSECURE} '
                f'and mysql_install_db was not found in PATH'
            )
        else:
            logger.warning('mysql_install_db not found, setup() will not be able to bootstrap')

    return config
