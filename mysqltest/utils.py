import os
import shutil
import signal
import socket
from logging import getLogger

from .errors import BinaryNotFoundError, PortAllocationError

logger = getLogger(__name__)


MYSQL_SEARCH_PATHS = [
    '.',
    '/usr/local/mysql/bin',
]
MYSQLD_SEARCH_DIRS = [
    'bin', 'libexec', 'sbin',
]

TRUE_VALUES = ('1', 't', 'true', 'yes', 'on')


class GracefulKiller:
    kill_now = False

    def __init__(self):
        signal.signal(signal.SIGINT, self.exit_gracefully)
        signal.signal(signal.SIGTERM, self.exit_gracefully)

    def exit_gracefully(self, signum, frame):
        self.kill_now = True


def parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUE_VALUES


def find_free_port(host='127.0.0.1') -> int:
    """Ask the kernel for an unused TCP port on `host`."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind((host, 0))
            return s.getsockname()[1]
    except OSError as e:
        raise PortAllocationError(
            f'could not find a temporary port to bind to on {host}: {e}'
        ) from e


def _which(path):
    # A bare name is looked up on PATH, anything with a separator is checked in place.
    if os.sep not in path:
        return shutil.which(path)
    if os.path.isfile(path) and os.access(path, os.X_OK):
        return os.path.abspath(path)
    return None


def look_executable_path(name, base, search):
    """Find executable `name` under `base`/<dir> for each dir in `search`."""
    for directory in search:
        candidate = os.path.normpath(os.path.join(base, directory, name))
        fullpath = _which(candidate)
        if fullpath is not None:
            return fullpath
    raise BinaryNotFoundError(
        f'could not find {name} in {search} (base: {base or "PATH"})'
    )


def look_mysqld_path():
    fullpath = shutil.which('mysqld')
    if fullpath is not None:
        return fullpath

    # Guess the install prefix from the mysql client location.
    mysql_path = look_executable_path('mysql', '', MYSQL_SEARCH_PATHS)
    mysql_bin = os.path.join(os.sep, 'bin', 'mysql')
    if not mysql_path.endswith(mysql_bin):
        raise BinaryNotFoundError(f'unsupported mysql path: {mysql_path}')
    base = mysql_path[:-len(mysql_bin)]
    logger.debug(f'mysqld not on PATH, searching under {base}')
    return look_executable_path('mysqld', base, MYSQLD_SEARCH_DIRS)


def copy_tree(src, dst):
    """Recursively copy `src` into `dst`, keeping file modes."""
    logger.info(f'copying data from {src} to {dst}')
    shutil.copytree(src, dst, dirs_exist_ok=True)
