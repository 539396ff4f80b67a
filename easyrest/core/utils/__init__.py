#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Utility exports for EasyRest core.

Author: Silan Hu (silan.hu@u.nus.edu)
"""

from .logger import ModernLogger
from .exceptions import *  # noqa: F401,F403
from .async_helpers import BlockingLoopRunner, get_default_runner
from .concurrency import (
    CancellationRegistration,
    CancellationToken,
    CancellationTokenSource,
    run_with_cancellation,
)

__all__ = [
    "ModernLogger",
    "BlockingLoopRunner",
    "get_default_runner",
    "CancellationRegistration",
    "CancellationToken",
    "CancellationTokenSource",
    "run_with_cancellation",
]
