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

import time

import boto3

from botocore.exceptions import BotoCoreError, ClientError

from coldstore.Errors import RemoteServiceError, ThrottlingError
from coldstore.Glacier import errorCode
from coldstore.Kernel import getLogger
from coldstore.Settings import ARCHIVE_TABLE, METADATA_BACKOFF, METADATA_MAX_RETRIES

# Write capacity responses worth waiting out
THROTTLING_CODES = ('ProvisionedThroughputExceededException', 'ThrottlingException', 'RequestLimitExceeded')

logger = getLogger(__name__)


class ArchiveRecordStore:
    """Key-value store holding one record per completed upload, keyed by archive id."""

    def ensureTable(self):
        pass

    def put(self, record):
        raise NotImplementedError


class DynamoArchiveStore(ArchiveRecordStore):

    def __init__(self, region=None, tableName=ARCHIVE_TABLE, client=None):
        self.region = region
        self.tableName = tableName
        self.client = client or boto3.client('dynamodb', region_name=region)

    def ensureTable(self):
        """
        Create the archive table if it does not exist yet and wait until it is active.
        """
        try:
            self.client.describe_table(TableName=self.tableName)
            return False
        except ClientError as e:
            if errorCode(e) != 'ResourceNotFoundException':
                raise RemoteServiceError(f'describe_table failed: {e}', 'describe_table', errorCode(e)) from e

        logger.info(f"Creating table {self.tableName}...")
        try:
            self.client.create_table(
                TableName=self.tableName,
                KeySchema=[{'AttributeName': 'ArchiveId', 'KeyType': 'HASH'}],
                AttributeDefinitions=[{'AttributeName': 'ArchiveId', 'AttributeType': 'S'}],
                ProvisionedThroughput={'ReadCapacityUnits': 1, 'WriteCapacityUnits': 1},
            )
            self.client.get_waiter('table_exists').wait(TableName=self.tableName)
        except (ClientError, BotoCoreError) as e:
            raise RemoteServiceError(f'Failed to create table {self.tableName}: {e}', 'create_table',
                                     errorCode(e)) from e

        logger.info(f"Table {self.tableName} initialized")
        return True

    def put(self, record):
        try:
            self.client.put_item(TableName=self.tableName, Item=record.toItem())
        except ClientError as e:
            code = errorCode(e)
            if code in THROTTLING_CODES:
                raise ThrottlingError(f'Write capacity exceeded on {self.tableName}', code) from e
            raise RemoteServiceError(f'put_item failed: {e}', 'put_item', code) from e
        except BotoCoreError as e:
            raise RemoteServiceError(f'put_item failed: {e}', 'put_item') from e


def persistRecord(store, record, maxRetries=METADATA_MAX_RETRIES, backoff=METADATA_BACKOFF, sleep=time.sleep):
    """
    Write record, retrying throttled writes after attempt * backoff seconds.

    Returns the number of retries it took.

    Raises:
        ThrottlingError: Once the write has been throttled more than maxRetries times
    """
    attempt = 0
    while True:
        try:
            store.put(record)
            logger.info(f"Saved archive record {record.archiveId}")
            return attempt
        except ThrottlingError:
            attempt += 1
            if attempt > maxRetries:
                logger.error(f"Giving up on archive record {record.archiveId} after {maxRetries} retries")
                raise

            logger.warning(f"Metadata store throttled, retry {attempt}/{maxRetries}")
            sleep(attempt * backoff)
