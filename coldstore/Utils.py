#!/usr/bin/env python
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
#
# ColdStore CLI - Tree-hashed archive uploads to cold storage vaults
# Copyright (C) 2024-2025 ColdStore contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
import os
import sys

import bitmath

from coldstore.Kernel import getLogger

ONE_KB = int(bitmath.KiB(1).bytes)
ONE_MB = int(bitmath.MiB(1).bytes)
ONE_GB = int(bitmath.GiB(1).bytes)
ONE_TB = int(bitmath.TiB(1).bytes)

TRUE_VALUES = ('true', '1', 'yes', 'on')

logger = getLogger(__name__)


# Frozen executables buffer stdout, always flush.
def flushPrint(text):
    try:
        print(text, flush=True)
        return
    except UnicodeEncodeError as e:
        logger.debug(f"Console cannot encode output ({sys.stdout.encoding}): {e}")

    raw = getattr(sys.stdout, 'buffer', None)
    if raw is not None:
        raw.write(text.encode('utf-8', errors='replace') + b'\n')
        raw.flush()
    else:
        encoding = sys.stdout.encoding or 'ascii'
        print(text.encode(encoding, errors='replace').decode(encoding), flush=True)


def formatSize(size, decimal=None, plural=None):
    """
    Human readable SI size: '512 Bytes', '2K', '524M', '5.4G', '1.10T'.

    Sizes under 1 GiB get no decimals, under 1 TiB one, anything larger two.
    """
    if decimal is None:
        decimal = 0 if size < ONE_GB else 1 if size < ONE_TB else 2
    if plural is None:
        plural = size <= ONE_KB

    best = bitmath.Byte(size).best_prefix(system=bitmath.SI)
    unitKey = 'unit_plural' if plural else 'unit'
    text = best.format('{value:.%df}{%s}' % (decimal, unitKey))

    if text.endswith(('Byte', 'Bytes')):
        return text.replace('Byte', ' Byte')
    return text.replace('B', '').upper()


def toMiB(size):
    """Bytes as a float number of MiB."""
    return bitmath.Byte(size).to_MiB().value


def sendException(logger, e, action=None, errorPrefix="Oops, something went wrong"):
    """
    Tell the user what failed, log the traceback, and re-raise when RAISE_EXCEPTION=True.
    """
    if e is None:
        logger.error(f'sendException called without an exception ({errorPrefix=})')
        return

    flushPrint(f'{errorPrefix}: {e}' if errorPrefix else f'{e}')
    if action:
        flushPrint(action)

    logger.exception(e)

    if getEnv('RAISE_EXCEPTION', False) and isinstance(e, BaseException):
        raise e


def getEnv(envVar, default):
    """
    Read envVar converted to the type of default. Unset or unparsable values give default.
    """
    value = os.getenv(envVar)
    if value is None or default is None:
        return value if value is not None else default

    try:
        if isinstance(default, bool):
            return value.strip().lower() in TRUE_VALUES
        return type(default)(value)
    except (ValueError, TypeError):
        logger.debug(f"Ignoring {envVar}={value!r}, expected {type(default).__name__}")
        return default
