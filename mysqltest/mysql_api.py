from contextlib import contextmanager
from logging import getLogger

import mysql.connector

from .datasource import Datasource

logger = getLogger(__name__)


class MySQLApi:
    """Direct (unpooled) connections to a test mysqld.

    A fresh connection is opened for every call, which is what the readiness
    probe needs: nothing is cached between attempts.
    """

    def __init__(self, ds: Datasource, connection_timeout=None):
        self.ds = ds
        self.connection_timeout = connection_timeout

    @contextmanager
    def get_connection(self):
        """Get a direct MySQL connection with automatic cleanup"""
        extra = {'autocommit': True}
        if self.connection_timeout is not None:
            extra['connection_timeout'] = self.connection_timeout
        connection = mysql.connector.connect(**self.ds.connection_config(**extra))
        try:
            cursor = connection.cursor()
            try:
                yield connection, cursor
            finally:
                cursor.close()
        finally:
            connection.close()

    def execute(self, command, args=None):
        with self.get_connection() as (connection, cursor):
            cursor.execute(command, args)
            if cursor.with_rows:
                return cursor.fetchall()
            return None

    def select_one(self):
        """Run `SELECT 1` and return the scalar."""
        rows = self.execute('SELECT 1')
        return rows[0][0]

    def create_database(self, db_name):
        logger.info(f'creating database `{db_name}` if not exists')
        self.execute(f'CREATE DATABASE IF NOT EXISTS `{db_name}`')

    def get_databases(self):
        return [x[0] for x in self.execute('SHOW DATABASES')]
