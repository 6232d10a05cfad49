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

import json
import time

from coldstore.Errors import ArchiveIOError, RemoteServiceError, ValidationError
from coldstore.Glacier import waitForJob
from coldstore.Kernel import getLogger
from coldstore.Settings import JOB_POLL_INTERVAL
from coldstore.Utils import flushPrint

logger = getLogger(__name__)


def retrieveInventory(
    client,
    vaultName,
    outputPath,
    jobId=None,
    pollInterval=JOB_POLL_INTERVAL,
    sleep=time.sleep,
    cancelToken=None,
    loggerCallback=flushPrint,
):
    """
    Fetch a vault inventory into outputPath.

    Starts an inventory job unless jobId names one already running, then waits
    for it and writes its JSON output. The job id is reported straight away so
    an interrupted run can be resumed with it.

    Returns:
        list: The ArchiveList entries of the inventory
    """
    if not vaultName:
        raise ValidationError('No vault specified')
    if not outputPath:
        raise ValidationError('Output path not specified')

    if not jobId:
        jobId = client.initiateRetrieval(vaultName)
        loggerCallback(f'Inventory job started, job id: {jobId}')

    waitForJob(client, vaultName, jobId, pollInterval, sleep, cancelToken)

    output = client.getJobOutput(vaultName, jobId)
    body = output['body']
    try:
        content = body.read()
    finally:
        body.close()

    try:
        inventory = json.loads(content)
    except ValueError as e:
        raise RemoteServiceError(f'Inventory output is not valid JSON: {e}', 'get_job_output', 'InvalidInventory')

    try:
        with open(outputPath, 'w', encoding='utf-8') as f:
            json.dump(inventory, f, indent=2)
    except OSError as e:
        raise ArchiveIOError(f'Failed to write {outputPath}: {e}', outputPath) from e

    archives = inventory.get('ArchiveList', [])
    logger.info(f"Inventory of {vaultName}: {len(archives)} archives written to {outputPath}")
    return archives
