#!/usr/bin/env python3
"""
Entry point for running mysqltest as a module.
This file enables: python -m mysqltest
"""

from .main import main

if __name__ == '__main__':
    main()
