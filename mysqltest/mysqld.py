import enum
import os
import threading
import warnings
from logging import getLogger

from .config import AUTO_START_FULL, AUTO_START_LAUNCH, MysqldConfig, resolve_config
from .datasource import (
    Datasource,
    DatasourceOption,
    Dbname,
    Host,
    Password,
    Port,
    Proto,
    Socket,
    User,
    datasource,
)
from .errors import AlreadyRunningError, LaunchError, LogReadError, PathError, ProvisionError
from .guards import GuardStack
from .mysql_api import MySQLApi
from .process import MysqldProcess
from .provision import setup_instance
from .readiness import ensure_database, wait_for_connection, wait_for_launch

logger = getLogger(__name__)

LOG_FILE_NAME = 'mysqld.log'


class State(enum.Enum):
    CREATED = 'created'
    PROVISIONED = 'provisioned'
    RUNNING = 'running'
    STOPPED = 'stopped'


class TestMysqld:
    """One disposable mysqld instance.

    Created -> Provisioned (setup) -> Running (start) -> Stopped (stop).
    A stopped instance cannot be started again, build a new one instead.
    `stop()` must not be called while `start()` is still in flight on
    another thread.
    """

    # not a pytest test class
    __test__ = False

    def __init__(self, config: MysqldConfig, guards: GuardStack = None):
        self.config = config
        self.guards = guards if guards is not None else GuardStack()
        self.defaults_file = os.path.join(config.base_dir, 'etc', 'my.cnf')
        self.log_file = ''
        self.state = State.CREATED
        self._process = None
        self._lock = threading.Lock()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    @property
    def base_dir(self):
        return self.config.base_dir

    @property
    def socket(self):
        return self.config.socket

    @property
    def pid(self):
        with self._lock:
            return self._process.pid if self._process is not None else None

    def assert_not_running(self):
        pid_file = self.config.pid_file
        if not pid_file:
            return
        try:
            os.stat(pid_file)
        except FileNotFoundError:
            return
        except OSError as e:
            raise PathError(f'invalid error while checking for mysqld pid file {pid_file}: {e}') from e
        raise AlreadyRunningError(f'mysqld is already running ({pid_file})')

    def setup(self):
        if self.state is not State.CREATED:
            raise ProvisionError(f'cannot set up a {self.state.value} instance')
        setup_instance(self.config, self.defaults_file)
        self.state = State.PROVISIONED

    def start(self):
        if self.state in (State.RUNNING, State.STOPPED):
            raise LaunchError(f'cannot start a {self.state.value} instance')
        self.assert_not_running()

        config = self.config
        self.log_file = os.path.join(config.tmp_dir, LOG_FILE_NAME)
        process = MysqldProcess(
            [config.mysqld, f'--defaults-file={self.defaults_file}', '--user=root'],
            self.log_file,
        )
        process.run()
        with self._lock:
            self._process = process

        try:
            wait_for_launch(process, timeout=config.launch_timeout, interval=config.poll_interval)

            api = MySQLApi(
                self.datasource_for(Dbname('mysql'), User('root')),
                connection_timeout=max(1, int(config.poll_interval)),
            )
            wait_for_connection(
                process, api.select_one,
                timeout=config.connect_timeout, interval=config.poll_interval,
            )
            if not config.copy_data_from:
                ensure_database(api)
        except Exception:
            # a failed start leaves no process or open log behind, start() may be retried
            process.kill()
            process.close()
            raise

        self.state = State.RUNNING

    def stop(self):
        """Kill mysqld if it is still reachable and run the cleanup guards."""
        with self._lock:
            process = self._process
        if process is not None:
            process.kill()
            process.close()
        self.guards.run_all()
        if self.state is not State.STOPPED:
            logger.info(f'stopped test mysqld in {self.base_dir}')
        self.state = State.STOPPED

    def read_log(self) -> bytes:
        if not self.log_file:
            raise LogReadError('mysqld was never started, there is no log file')
        try:
            with open(self.log_file, 'rb') as f:
                return f.read()
        except OSError as e:
            raise LogReadError(f'failed to read {self.log_file}: {e}') from e

    def datasource_for(self, *options: DatasourceOption) -> Datasource:
        """Reduce `options` with the socket / host:port of this instance as defaults.

        Explicit protocol, socket, host or port options win over the
        instance settings.
        """
        given = {type(o) for o in options}
        proto = None
        for option in options:
            if isinstance(option, Proto):
                proto = option.value

        defaults = []
        if proto is None:
            proto = 'unix' if self.config.skip_networking else 'tcp'
            defaults.append(Proto(proto))
        if proto == 'unix':
            if Socket not in given:
                defaults.append(Socket(self.config.socket))
        else:
            if Host not in given:
                defaults.append(Host(self.config.bind_address))
            if Port not in given:
                defaults.append(Port(self.config.port))
        return datasource(*options, *defaults)

    def dsn(self, *options: DatasourceOption) -> str:
        return self.datasource_for(*options).dsn()

    def datasource(self, dbname='', user='', password='', port=0, *options):
        warnings.warn(
            'TestMysqld.datasource() is deprecated, use dsn() instead',
            DeprecationWarning, stacklevel=2,
        )
        options = list(options)
        if user:
            options.append(User(user))
        if dbname:
            options.append(Dbname(dbname))
        if password:
            options.append(Password(password))
        if port:
            options.append(Port(port))
        return self.dsn(*options)

    def connect_string(self, port=0):
        warnings.warn(
            'TestMysqld.connect_string() is deprecated, use dsn() instead',
            DeprecationWarning, stacklevel=2,
        )
        if self.config.skip_networking:
            return f'unix({self.config.socket})'
        if port <= 0:
            port = self.config.port
        return f'tcp({self.config.bind_address}:{port})'


def new_mysqld(config: MysqldConfig = None) -> TestMysqld:
    """Resolve `config` and, depending on `auto_start`, set up and start mysqld.

    Whatever was created before a failure is cleaned up before the error
    propagates.
    """
    guards = GuardStack()
    try:
        config = resolve_config(config, guards)
    except Exception:
        guards.run_all()
        raise

    mysqld = TestMysqld(config, guards)
    if config.auto_start < AUTO_START_LAUNCH:
        return mysqld

    try:
        mysqld.assert_not_running()
        if config.auto_start >= AUTO_START_FULL:
            mysqld.setup()
        mysqld.start()
    except Exception:
        mysqld.stop()
        raise
    return mysqld
