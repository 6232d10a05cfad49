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
import signal
import sys

from coldstore.CLI import loadEnvFile, runCLI
from coldstore.Kernel import getLogger
from coldstore.Models import CancellationToken
from coldstore.Settings import SettingsGetter
from coldstore.Utils import flushPrint, sendException

EXIT_INTERRUPTED = 130

logger = getLogger(__name__)


def setupGracefulShutdown(cancelToken):
    """
    First Ctrl+C cancels the running transfer and unwinds through KeyboardInterrupt,
    a second one exits on the spot.
    """

    def onInterrupt(signum, frame):
        if cancelToken.isCancelled():
            os._exit(EXIT_INTERRUPTED)

        cancelToken.cancel()
        raise KeyboardInterrupt()

    signal.signal(signal.SIGINT, onInterrupt)


def setupSettings():
    # .env must be in os.environ before the settings singleton reads it
    loadEnvFile()
    return SettingsGetter.getInstance()


def main(argv=None):
    """The main entry point"""
    setupSettings()

    cancelToken = CancellationToken()
    setupGracefulShutdown(cancelToken)

    try:
        return runCLI(argv, cancelToken=cancelToken)
    except KeyboardInterrupt:
        flushPrint('\nInterrupted, transfer abandoned.')
        return EXIT_INTERRUPTED


if __name__ == '__main__':
    try:
        sys.exit(main() or 0)
    except Exception as e:
        sendException(logger, e)
        sys.exit(1)
