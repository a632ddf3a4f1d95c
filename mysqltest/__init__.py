import importlib.metadata

from .config import MysqldConfig, new_config, resolve_config
from .datasource import (
    Datasource,
    DatasourceOption,
    Dbname,
    Host,
    MultiStatements,
    ParseTime,
    Password,
    Port,
    Proto,
    Socket,
    User,
    datasource,
)
from .errors import *  # noqa: F401,F403
from .mysqld import State, TestMysqld, new_mysqld

try:
    __version__ = importlib.metadata.version("mysqltest")
except importlib.metadata.PackageNotFoundError:
    __version__ = "unknown"  # fallback version
