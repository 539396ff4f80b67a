#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Codec exports for EasyRest.

Author: Silan Hu (silan.hu@u.nus.edu)
"""

from .codecs import Codec, JSONCodec

__all__ = ["Codec", "JSONCodec"]
