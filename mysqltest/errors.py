class MysqltestError(Exception):
    """Base class for every error raised while managing a test mysqld."""


class PathError(MysqltestError):
    pass


class PortAllocationError(MysqltestError):
    pass


class BinaryNotFoundError(MysqltestError):
    pass


class AlreadyRunningError(MysqltestError):
    pass


class ProvisionError(MysqltestError):
    pass


class BootstrapError(MysqltestError):
    """Bootstrapping the data directory failed.

    Attributes:
        command: argv of the bootstrap invocation
        output: combined stdout/stderr of the failed process
    """

    def __init__(self, command, output):
        self.command = list(command)
        self.output = output
        cmd_name = ' '.join(self.command)
        super().__init__(f'error: *** [{cmd_name}] failed ***\n{output}\n')


class LaunchError(MysqltestError):
    pass


class LaunchTimeoutError(LaunchError):
    pass


class ConnectTimeoutError(MysqltestError):
    pass


class SchemaCreateError(MysqltestError):
    pass


class LogReadError(MysqltestError):
    pass
