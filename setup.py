#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Minimal setup.py for distcast.

All project metadata lives in pyproject.toml; this file only lets legacy
tooling that still invokes ``setup.py`` build the package.
"""

import setuptools

if __name__ == "__main__":
    setuptools.setup()
