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
import time

from coldstore.Errors import ArchiveIOError, RemoteServiceError, ValidationError
from coldstore.Glacier import waitForJob
from coldstore.Kernel import getLogger
from coldstore.Progress import Progress
from coldstore.Settings import JOB_POLL_INTERVAL, SettingsGetter
from coldstore.TreeHash import TreeHasher
from coldstore.Utils import formatSize

logger = getLogger(__name__)


def downloadArchive(
    client,
    vaultName,
    archiveId,
    outputPath,
    jobId=None,
    pollInterval=JOB_POLL_INTERVAL,
    sleep=time.sleep,
    progressFactory=Progress,
    cancelToken=None,
    chunkSize=None,
):
    """
    Retrieve an archive into outputPath and verify it against the store's tree hash.

    Without a jobId a new retrieval job is started and polled until it completes,
    which usually takes hours.

    Returns:
        int: Number of bytes written
    """
    if not vaultName:
        raise ValidationError('No vault specified')
    if not archiveId and not jobId:
        raise ValidationError('No archive id specified')
    if not outputPath:
        raise ValidationError('Output path not specified')

    chunkSize = chunkSize or SettingsGetter.getInstance().transferChunkSize

    logger.info(f"Downloading archive '{archiveId}' from {vaultName}...")

    if not jobId:
        jobId = client.initiateRetrieval(vaultName, archiveId)
        logger.info(f"Started retrieval job {jobId}")

    job = waitForJob(client, vaultName, jobId, pollInterval, sleep, cancelToken)
    totalSize = job.get('ArchiveSizeInBytes') or 0

    output = client.getJobOutput(vaultName, jobId)
    body = output['body']
    expected = output.get('checksum') or job.get('SHA256TreeHash')

    written = 0
    progress = progressFactory(totalSize, description='Download') if progressFactory else None
    try:
        with open(outputPath, 'wb') as f:
            while True:
                if cancelToken is not None:
                    cancelToken.raiseIfCancelled('reading job output')

                chunk = body.read(chunkSize)
                if not chunk:
                    break
                f.write(chunk)
                written += len(chunk)

                if progress is not None:
                    progress.update(written)
    except OSError as e:
        raise ArchiveIOError(f'Failed to write {outputPath}: {e}', outputPath, written) from e
    finally:
        body.close()
        if progress is not None:
            progress.finishBar()

    if totalSize and written != totalSize:
        raise RemoteServiceError(
            f'Job output ended after {written} of {totalSize} bytes', 'get_job_output', 'IncompleteBody'
        )

    if expected:
        with open(outputPath, 'rb') as f:
            actual = TreeHasher.toHex(TreeHasher.treeHashStream(f))
        if actual != expected:
            raise RemoteServiceError(
                f'Downloaded archive tree hash {actual} does not match {expected}', 'get_job_output',
                'ChecksumMismatch'
            )

    logger.info(f"Downloaded {formatSize(written)} to {os.path.abspath(outputPath)}")
    return written
