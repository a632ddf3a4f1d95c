"""
Datasource names for connecting to a test mysqld.

A DSN is built by reducing a sequence of options, left to right, into a
`Datasource`; later options override earlier ones of the same kind. Every
option kind is its own class, so an unknown option cannot be expressed and a
wrongly typed value is rejected when the option is constructed.

Example:
    >>> str(datasource(Dbname('test'), User('root'), Proto('unix'), Socket('/tmp/x.sock')))
    'root:@unix(/tmp/x.sock)/test'
"""

from dataclasses import dataclass, field, replace

PROTOCOLS = ('tcp', 'unix')


def _check(option, value, kind):
    if kind is int and isinstance(value, bool):
        raise TypeError(f'{type(option).__name__} expects int and not bool')
    if not isinstance(value, kind):
        raise TypeError(
            f'{type(option).__name__} expects {kind.__name__} and not {type(value).__name__}'
        )


@dataclass(frozen=True)
class Datasource:
    proto: str = 'tcp'
    host: str = 'localhost'
    port: int = 3306
    socket: str = ''
    dbname: str = 'test'
    user: str = 'root'
    password: str = ''
    params: dict = field(default_factory=dict)

    @property
    def address(self):
        if self.proto == 'unix':
            return f'unix({self.socket})'
        return f'tcp({self.host}:{self.port})'

    def dsn(self):
        s = f'{self.user}:{self.password}@{self.address}/{self.dbname}'
        if self.params:
            query = '&'.join(
                f'{name}={str(value).lower()}' for name, value in sorted(self.params.items())
            )
            s = f'{s}?{query}'
        return s

    def __str__(self):
        return self.dsn()

    def connection_config(self, **kwargs):
        """Keyword arguments for `mysql.connector.connect()`."""
        config = {
            'user': self.user,
            'password': self.password,
            'database': self.dbname,
        }
        if self.proto == 'unix':
            config['unix_socket'] = self.socket
        else:
            config['host'] = self.host
            config['port'] = self.port
        config.update(kwargs)
        return config


@dataclass(frozen=True)
class DatasourceOption:
    value: object

    def apply(self, ds: Datasource) -> Datasource:
        raise NotImplementedError()


@dataclass(frozen=True)
class Proto(DatasourceOption):
    """Connection protocol, "unix" or "tcp"."""
    value: str

    def __post_init__(self):
        _check(self, self.value, str)
        if self.value not in PROTOCOLS:
            raise ValueError(f'unsupported protocol {self.value!r}, expected one of {PROTOCOLS}')

    def apply(self, ds):
        return replace(ds, proto=self.value)


@dataclass(frozen=True)
class Socket(DatasourceOption):
    """Unix socket path, only used with the unix protocol."""
    value: str

    def __post_init__(self):
        _check(self, self.value, str)

    def apply(self, ds):
        return replace(ds, socket=self.value)


@dataclass(frozen=True)
class Host(DatasourceOption):
    """Host name, only used with the tcp protocol."""
    value: str

    def __post_init__(self):
        _check(self, self.value, str)

    def apply(self, ds):
        return replace(ds, host=self.value)


@dataclass(frozen=True)
class Port(DatasourceOption):
    """Port number, only used with the tcp protocol."""
    value: int

    def __post_init__(self):
        _check(self, self.value, int)

    def apply(self, ds):
        return replace(ds, port=self.value)


@dataclass(frozen=True)
class Dbname(DatasourceOption):
    value: str

    def __post_init__(self):
        _check(self, self.value, str)

    def apply(self, ds):
        return replace(ds, dbname=self.value)


@dataclass(frozen=True)
class User(DatasourceOption):
    value: str

    def __post_init__(self):
        _check(self, self.value, str)

    def apply(self, ds):
        return replace(ds, user=self.value)


@dataclass(frozen=True)
class Password(DatasourceOption):
    value: str

    def __post_init__(self):
        _check(self, self.value, str)

    def apply(self, ds):
        return replace(ds, password=self.value)


@dataclass(frozen=True)
class ParseTime(DatasourceOption):
    """Append `parseTime=true|false` to the DSN."""
    value: bool

    def __post_init__(self):
        _check(self, self.value, bool)

    def apply(self, ds):
        return replace(ds, params={**ds.params, 'parseTime': self.value})


@dataclass(frozen=True)
class MultiStatements(DatasourceOption):
    """Append `multiStatements=true|false` to the DSN."""
    value: bool

    def __post_init__(self):
        _check(self, self.value, bool)

    def apply(self, ds):
        return replace(ds, params={**ds.params, 'multiStatements': self.value})


def datasource(*options: DatasourceOption) -> Datasource:
    ds = Datasource()
    for option in options:
        if not isinstance(option, DatasourceOption):
            raise TypeError(f'not a datasource option: {option!r}')
        ds = option.apply(ds)
    return ds
