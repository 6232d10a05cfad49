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
import logging
import threading

# Error reporting is disabled unless COLDSTORE_SENTRY_DSN is set explicitly.
import sentry_sdk

from sentry_sdk.integrations.logging import SentryHandler, LoggingIntegration
from sentry_sdk.integrations import atexit as sentryAtexit

PUBLIC_VERSION = '1.2.0'

LOG_LEVEL_MAPPING = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
}

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def _isConsoleHandler(handler):
    return isinstance(handler, logging.StreamHandler) and not isinstance(handler, SentryHandler)


def configureGlobalLogLevel(logLevel):
    """
    Set the root level and make sure the console shows records at that level.

    Args:
        logLevel: A logging constant such as logging.INFO
    """
    root = logging.getLogger()
    root.setLevel(logLevel)

    consoleHandlers = [h for h in root.handlers if _isConsoleHandler(h)]
    if not root.handlers:
        consoleHandlers = [logging.StreamHandler()]
        root.addHandler(consoleHandlers[0])

    for handler in consoleHandlers:
        handler.setLevel(logLevel)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))


_envLevel = LOG_LEVEL_MAPPING.get(os.getenv('COLDSTORE_LOGGING_LEVEL', '').upper())
if _envLevel is not None:
    configureGlobalLogLevel(_envLevel)


def initSentry(dsn=None):
    """
    Start Sentry when a DSN is configured. Returns True only for the call that started it.
    """
    dsn = dsn or os.getenv('COLDSTORE_SENTRY_DSN')
    if not dsn or sentry_sdk.get_client().is_active():
        return False

    # Quiet the "sending pending events" notice at exit
    sentryAtexit.default_callback = lambda pending, timeout: None

    sentry_sdk.init(
        dsn=dsn,
        release=f'coldstore@{PUBLIC_VERSION}',
        default_integrations=False,
        integrations=[LoggingIntegration(), sentryAtexit.AtexitIntegration()],
    )
    return True


def getLogger(name):
    """
    Module logger that also forwards to Sentry. Without a DSN the Sentry handler does nothing.
    """
    logger = logging.getLogger(name)

    try:
        started = initSentry()
    except Exception as e:
        logger.warning(f"Sentry unavailable: {e}")
        return logger

    if not any(isinstance(h, SentryHandler) for h in logger.handlers):
        sentryHandler = SentryHandler()
        sentryHandler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(sentryHandler)

    if started:
        logger.debug('Sentry initialized')

    return logger


class Singleton:
    """
    Thread-safe base for process-wide objects. Subclasses put their setup in initialize(),
    which runs once, with the arguments of the first construction.
    """

    _instances = {}
    _lock = threading.Lock()

    def __new__(cls, *args, **kwargs):
        with cls._lock:
            instance = cls._instances.get(cls)
            if instance is None:
                instance = cls._instances[cls] = super().__new__(cls)
        return instance

    def __init__(self, *args, **kwargs):
        if getattr(self, '_initialized', False):
            return
        self.initialize(*args, **kwargs)
        self._initialized = True

    def initialize(self, *args, **kwargs):
        pass

    @classmethod
    def getInstance(cls):
        return cls._instances.get(cls) or cls()

    @classmethod
    def resetInstance(cls):
        """Forget the current instance so the next getInstance() builds a fresh one."""
        with cls._lock:
            cls._instances.pop(cls, None)
