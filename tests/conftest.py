#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Pytest bootstrap for local package imports and shared fixtures.

Author: Silan Hu (silan.hu@u.nus.edu)
"""

import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """
    Keep the process-wide configuration independent of the developer's shell.
    """
    from easyrest.core.config import reset_config

    for name in ("EASYREST_DEFAULT_TIMEOUT", "EASYREST_TRACE", "EASYREST_LOG_LEVEL", "EASYREST_USER_AGENT"):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()
