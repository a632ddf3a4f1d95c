import os
import subprocess
from logging import getLogger

from .config import INITIALIZE_INSECURE, MysqldConfig
from .errors import BinaryNotFoundError, BootstrapError, ProvisionError
from .utils import copy_tree

logger = getLogger(__name__)

SUBDIRS = ('etc', 'var', 'tmp')


def render_defaults_file(config: MysqldConfig) -> str:
    lines = [
        '[mysqld]',
        f'datadir={config.data_dir}',
        f'pid-file={config.pid_file}',
    ]
    if config.skip_networking:
        lines.append('skip-networking')
    else:
        lines.append(f'port={config.port}')
    lines.append(f'socket={config.socket}')
    lines.append(f'tmpdir={config.tmp_dir}')
    return '\n'.join(lines) + '\n'


def write_defaults_file(config: MysqldConfig, defaults_file):
    try:
        with open(defaults_file, 'w') as f:
            f.write(render_defaults_file(config))
            f.flush()
            os.fsync(f.fileno())
    except OSError as e:
        raise ProvisionError(f'failed to create defaults file {defaults_file}: {e}') from e
    logger.info(f'wrote defaults file {defaults_file}')


def install_db_basedir(install_db):
    """MySQL installation prefix for `mysql_install_db --basedir`.

    That is two levels above the tool, after following one symlink.
    """
    try:
        is_link = os.path.islink(install_db)
        target = os.readlink(install_db) if is_link else install_db
    except OSError as e:
        raise ProvisionError(f'failed to stat {install_db}: {e}') from e
    if not os.path.isabs(target):
        target = os.path.abspath(os.path.join(os.path.dirname(install_db), target))
    return os.path.dirname(os.path.dirname(target))


def _make_dirs(config: MysqldConfig):
    try:
        os.makedirs(config.base_dir, mode=0o755, exist_ok=True)
    except OSError as e:
        raise ProvisionError(f'failed to create base_dir {config.base_dir}: {e}') from e

    for name in SUBDIRS:
        subdir = os.path.join(config.base_dir, name)
        try:
            os.mkdir(subdir, 0o755)
        except FileExistsError:
            pass
        except OSError as e:
            raise ProvisionError(f'failed to create subdirectory {subdir}: {e}') from e


def _bootstrap_command(config: MysqldConfig, defaults_file):
    args = [f'--defaults-file={defaults_file}']
    if config.mysql_install_db:
        # --basedir is the mysql installation, not the instance base_dir
        basedir = install_db_basedir(config.mysql_install_db)
        return [config.mysql_install_db, *args, f'--basedir={basedir}']
    if not config.initialize_insecure:
        raise BinaryNotFoundError(
            f'{config.mysqld} does not support {INITIALIZE_INSECURE} and no mysql_install_db was given'
        )
    return [config.mysqld, *args, INITIALIZE_INSECURE]


def bootstrap(config: MysqldConfig, defaults_file):
    cmd = _bootstrap_command(config, defaults_file)
    logger.info(f'bootstrapping data directory: {" ".join(cmd)}')
    try:
        res = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT)
    except OSError as e:
        raise BootstrapError(cmd, str(e)) from e
    output = res.stdout.decode('utf-8', errors='replace')
    if res.returncode != 0:
        raise BootstrapError(cmd, output)
    logger.debug(f'bootstrap output:\n{output}')


def _copy_seed(config: MysqldConfig):
    try:
        copy_tree(config.copy_data_from, config.data_dir)
    except OSError as e:
        raise ProvisionError(
            f'failed to copy data from {config.copy_data_from} to {config.data_dir}: {e}'
        ) from e


def setup_instance(config: MysqldConfig, defaults_file):
    """Create the directory layout, the defaults file and the system tables.

    Running it again over an already bootstrapped base_dir only rewrites the
    defaults file.
    """
    _make_dirs(config)

    # mysql_install_db runs fine over a pre-populated datadir, so the seed goes
    # in first. mysqld --initialize-insecure refuses a non-empty datadir, so
    # with that branch the seed is copied after bootstrap.
    copy_before = bool(config.copy_data_from and config.mysql_install_db)
    if copy_before:
        _copy_seed(config)

    write_defaults_file(config, defaults_file)

    system_dir = os.path.join(config.data_dir, 'mysql')
    if not os.path.exists(system_dir):
        bootstrap(config, defaults_file)
    else:
        logger.info(f'{system_dir} exists, skipping bootstrap')

    if config.copy_data_from and not copy_before:
        _copy_seed(config)
