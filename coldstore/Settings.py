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

from coldstore.Kernel import Singleton, getLogger
from coldstore.Utils import ONE_MB, getEnv

# Tree hash leaves are always 1 MiB, the store does not negotiate this.
TREE_HASH_LEAF_SIZE = ONE_MB

DEFAULT_PART_SIZE = getEnv('COLDSTORE_PART_SIZE', 128 * ONE_MB)
MIN_PART_SIZE = ONE_MB
MAX_PART_SIZE = 4096 * ONE_MB

ARCHIVE_TABLE = getEnv('COLDSTORE_ARCHIVE_TABLE', 'GlacierArchives')

# Metadata persistence retry: sleep attempt * backoff seconds, give up after this many retries.
METADATA_MAX_RETRIES = getEnv('COLDSTORE_METADATA_RETRIES', 20)
METADATA_BACKOFF = getEnv('COLDSTORE_METADATA_BACKOFF', 0.1)

PROGRESS_REPORT_INTERVAL = getEnv('COLDSTORE_PROGRESS_INTERVAL', 8 * ONE_MB)

# Retrieval jobs take hours; poll slowly.
JOB_POLL_INTERVAL = getEnv('COLDSTORE_JOB_POLL_INTERVAL', 60.0)

# Chunk size for streaming job output to disk
TRANSFER_CHUNK_SIZE = getEnv('COLDSTORE_TRANSFER_CHUNK_SIZE', ONE_MB)

logger = getLogger(__name__)


class SettingsGetter(Singleton):

    def initialize(
        self,
        region=None,
        partSize=None,
        archiveTable=None,
        metadataMaxRetries=None,
        metadataBackoff=None,
        progressInterval=None,
        jobPollInterval=None,
        transferChunkSize=None,
    ):
        """
        Initialize settings. Anything not given is read from the environment again, so values
        loaded from a .env file after import still apply.
        """
        self._region = region or os.getenv('AWS_REGION') or os.getenv('AWS_DEFAULT_REGION')
        self._partSize = partSize or getEnv('COLDSTORE_PART_SIZE', DEFAULT_PART_SIZE)
        self._archiveTable = archiveTable or getEnv('COLDSTORE_ARCHIVE_TABLE', ARCHIVE_TABLE)
        self._metadataMaxRetries = (
            getEnv('COLDSTORE_METADATA_RETRIES', METADATA_MAX_RETRIES)
            if metadataMaxRetries is None else metadataMaxRetries
        )
        self._metadataBackoff = (
            getEnv('COLDSTORE_METADATA_BACKOFF', METADATA_BACKOFF) if metadataBackoff is None else metadataBackoff
        )
        self._progressInterval = progressInterval or getEnv('COLDSTORE_PROGRESS_INTERVAL', PROGRESS_REPORT_INTERVAL)
        self._jobPollInterval = (
            getEnv('COLDSTORE_JOB_POLL_INTERVAL', JOB_POLL_INTERVAL) if jobPollInterval is None else jobPollInterval
        )
        self._transferChunkSize = transferChunkSize or getEnv('COLDSTORE_TRANSFER_CHUNK_SIZE', TRANSFER_CHUNK_SIZE)

        logger.debug(
            f"Settings: region={self._region}, partSize={self._partSize}, table={self._archiveTable}"
        )

    @property
    def region(self):
        return self._region

    @region.setter
    def region(self, value):
        self._region = value

    @property
    def partSize(self):
        return self._partSize

    @partSize.setter
    def partSize(self, value):
        self._partSize = value

    @property
    def archiveTable(self):
        return self._archiveTable

    @property
    def metadataMaxRetries(self):
        return self._metadataMaxRetries

    @property
    def metadataBackoff(self):
        return self._metadataBackoff

    @property
    def progressInterval(self):
        return self._progressInterval

    @property
    def jobPollInterval(self):
        return self._jobPollInterval

    @property
    def transferChunkSize(self):
        return self._transferChunkSize
