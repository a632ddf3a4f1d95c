import os
import socket

import pytest

from mysqltest import utils
from mysqltest.errors import BinaryNotFoundError
from mysqltest.utils import copy_tree, find_free_port, look_executable_path, look_mysqld_path, parse_bool
from tests.conftest import write_script


@pytest.mark.unit
def test_find_free_port_is_bindable():
    port = find_free_port()
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', port))


@pytest.mark.unit
@pytest.mark.parametrize('value,expected', [
    ('1', True), ('true', True), ('True', True), ('on', True),
    ('0', False), ('false', False), ('', False), ('garbage', False), ('y', False), (None, False),
])
def test_parse_bool(value, expected):
    assert parse_bool(value) is expected


@pytest.mark.unit
def test_look_executable_path_on_path(bin_dir):
    mysql = write_script(bin_dir / 'mysql', '#!/bin/sh\n')
    assert look_executable_path('mysql', '', ['.']) == mysql


@pytest.mark.unit
def test_look_executable_path_under_base(tmp_path, bin_dir):
    (tmp_path / 'opt' / 'libexec').mkdir(parents=True)
    mysqld = write_script(tmp_path / 'opt' / 'libexec' / 'mysqld', '#!/bin/sh\n')
    found = look_executable_path('mysqld', str(tmp_path / 'opt'), ['bin', 'libexec', 'sbin'])
    assert found == mysqld


@pytest.mark.unit
def test_look_executable_path_not_found(tmp_path, bin_dir):
    with pytest.raises(BinaryNotFoundError):
        look_executable_path('mysqld', str(tmp_path), ['bin', 'libexec', 'sbin'])


@pytest.mark.unit
def test_look_mysqld_path_prefers_path(bin_dir):
    mysqld = write_script(bin_dir / 'mysqld', '#!/bin/sh\n')
    assert look_mysqld_path() == mysqld


@pytest.mark.unit
def test_look_mysqld_path_from_mysql_client(tmp_path, monkeypatch, bin_dir):
    prefix = tmp_path / 'mysql-8.0'
    (prefix / 'bin').mkdir(parents=True)
    (prefix / 'sbin').mkdir()
    write_script(prefix / 'bin' / 'mysql', '#!/bin/sh\n')
    mysqld = write_script(prefix / 'sbin' / 'mysqld', '#!/bin/sh\n')
    monkeypatch.setenv('PATH', f'{prefix / "bin"}{os.pathsep}{os.environ["PATH"]}')

    assert look_mysqld_path() == mysqld


@pytest.mark.unit
def test_look_mysqld_path_client_without_server(bin_dir, monkeypatch):
    write_script(bin_dir / 'mysql', '#!/bin/sh\n')
    monkeypatch.setattr(utils, 'MYSQL_SEARCH_PATHS', ['.'])
    with pytest.raises(BinaryNotFoundError):
        look_mysqld_path()


@pytest.mark.unit
def test_look_mysqld_path_unsupported_client_location(tmp_path, bin_dir, monkeypatch):
    clients = tmp_path / 'clients'
    clients.mkdir()
    write_script(clients / 'mysql', '#!/bin/sh\n')
    monkeypatch.setenv('PATH', f'{clients}{os.pathsep}{os.environ["PATH"]}')
    monkeypatch.setattr(utils, 'MYSQL_SEARCH_PATHS', ['.'])
    with pytest.raises(BinaryNotFoundError, match='unsupported mysql path'):
        look_mysqld_path()


@pytest.mark.unit
def test_look_mysqld_path_nothing_installed(bin_dir, monkeypatch):
    monkeypatch.setattr(utils, 'MYSQL_SEARCH_PATHS', ['.'])
    with pytest.raises(BinaryNotFoundError):
        look_mysqld_path()


@pytest.mark.unit
def test_copy_tree_merges_into_existing_dir(tmp_path):
    src = tmp_path / 'seed'
    (src / 'test').mkdir(parents=True)
    (src / 'test' / 'hello.ibd').write_bytes(b'\x00\x01')
    (src / 'auto.cnf').write_text('[auto]\n')
    os.chmod(src / 'auto.cnf', 0o600)

    dst = tmp_path / 'var'
    dst.mkdir()
    (dst / 'existing').write_text('keep')

    copy_tree(str(src), str(dst))

    assert (dst / 'test' / 'hello.ibd').read_bytes() == b'\x00\x01'
    assert (dst / 'auto.cnf').read_text() == '[auto]\n'
    assert os.stat(dst / 'auto.cnf').st_mode & 0o777 == 0o600
    assert (dst / 'existing').read_text() == 'keep'
