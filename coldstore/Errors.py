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


class ColdStoreError(Exception):
    """Base exception for every failure the tool reports to its caller"""

    exitCode = 1


class ValidationError(ColdStoreError, ValueError):
    """Raised for missing or invalid inputs, always before any network activity"""

    exitCode = 2


class ArchiveIOError(ColdStoreError, IOError):
    """Raised when reading or writing a local file fails"""

    exitCode = 3

    def __init__(self, message, path=None, offset=None):
        super().__init__(message)
        self.path = path
        self.offset = offset


class RemoteServiceError(ColdStoreError):
    """Raised for any failure reported by the remote archive store"""

    exitCode = 4

    def __init__(self, message, operation=None, code=None, response=None):
        super().__init__(message)
        self.operation = operation
        self.code = code
        self.response = response


class ThrottlingError(ColdStoreError):
    """Raised when the metadata store rejects a write for exceeding its capacity"""

    exitCode = 5

    def __init__(self, message, code=None):
        super().__init__(message)
        self.code = code


class UploadCancelledError(ColdStoreError):
    """Raised at a blocking point once the cancellation token fired"""

    exitCode = 130


class UnexpectedError(ColdStoreError):
    """Wraps anything that does not fit the categories above"""

    exitCode = 1

    def __init__(self, message, cause=None):
        super().__init__(message)
        self.cause = cause
