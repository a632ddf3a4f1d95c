#!/usr/bin/env python3

import argparse
import logging
import sys
import time

from .config import AUTO_START_MANUAL, MysqldConfig, new_config, resolve_config
from .guards import GuardStack
from .mysqld import TestMysqld, new_mysqld
from .utils import GracefulKiller


def set_logging_config(tags, log_level_str=None):
    """Configure logging to output only to stderr, stdout carries the DSN."""
    handlers = [logging.StreamHandler(sys.stderr)]

    log_levels = {
        'critical': logging.CRITICAL,
        'error': logging.ERROR,
        'warning': logging.WARNING,
        'info': logging.INFO,
        'debug': logging.DEBUG,
    }

    log_level = log_levels.get(log_level_str)
    if log_level is None:
        logging.warning(f'Unknown log level {log_level_str}, setting info')
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format=f'[{tags} %(asctime)s %(levelname)8s] %(message)s',
        handlers=handlers,
    )


def load_config(args):
    if args.config:
        return MysqldConfig.load(args.config)
    return new_config()


def run_mysqld(args):
    set_logging_config('mysqltest', log_level_str=args.log_level)
    config = load_config(args)
    killer = GracefulKiller()

    with new_mysqld(config) as mysqld:
        print(mysqld.dsn(), flush=True)
        logging.info(f'mysqld {mysqld.pid} running in {mysqld.base_dir}, press Ctrl+C to stop')
        while not killer.kill_now:
            time.sleep(0.3)
        logging.info('stopping mysqld')


def print_dsn(args):
    set_logging_config('mysqltest', log_level_str=args.log_level)
    config = load_config(args)
    config.auto_start = AUTO_START_MANUAL

    guards = GuardStack()
    try:
        mysqld = TestMysqld(resolve_config(config, guards), guards)
        print(mysqld.dsn(), flush=True)
    finally:
        guards.run_all()


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "mode", help="run mode",
        type=str,
        choices=["run", "dsn"])
    parser.add_argument("--config", help="config file path (yaml)", default=None, type=str)
    parser.add_argument("--log-level", help="log level", default='info', type=str)
    args = parser.parse_args()

    if args.mode == 'run':
        run_mysqld(args)
    if args.mode == 'dsn':
        print_dsn(args)


if __name__ == '__main__':
    main()
