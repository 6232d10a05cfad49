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

from coldstore.Errors import RemoteServiceError
from coldstore.Kernel import getLogger
from coldstore.Models import CompletedUpload
from coldstore.Settings import JOB_POLL_INTERVAL

logger = getLogger(__name__)


def contentRange(start, end, total):
    """Range descriptor for a part spanning bytes start..end inclusive."""
    return f'bytes {start}-{end}/{total}'


def errorCode(e):
    if isinstance(e, ClientError):
        return e.response.get('Error', {}).get('Code')
    return None


class MultipartUploadClient:
    """
    Remote operations a chunked upload needs. Checksums are lowercase hex tree hashes.
    """

    def initiateUpload(self, vaultName, partSize, description=None):
        """Start a multipart upload and return its upload id."""
        raise NotImplementedError

    def uploadPart(self, vaultName, uploadId, rangeStart, rangeEnd, totalSize, data, checksum):
        """Send one part. The store validates range and checksum, any mismatch fails the whole upload."""
        raise NotImplementedError

    def completeUpload(self, vaultName, uploadId, totalSize, checksum) -> CompletedUpload:
        raise NotImplementedError


class GlacierVaultClient(MultipartUploadClient):
    """
    boto3 Glacier implementation. Calls are never retried here, every failure surfaces as RemoteServiceError.
    """

    def __init__(self, region=None, client=None, accountId='-'):
        self.region = region
        self.accountId = accountId
        self.client = client or boto3.client('glacier', region_name=region)

    def _call(self, operation, **kwargs):
        try:
            return getattr(self.client, operation)(accountId=self.accountId, **kwargs)
        except ClientError as e:
            code = errorCode(e)
            message = e.response.get('Error', {}).get('Message') or str(e)
            logger.debug(f"Glacier {operation} failed: {code} {message}")
            raise RemoteServiceError(f'{operation} failed: {message}', operation, code, e.response) from e
        except BotoCoreError as e:
            raise RemoteServiceError(f'{operation} failed: {e}', operation) from e

    def initiateUpload(self, vaultName, partSize, description=None):
        kwargs = {'vaultName': vaultName, 'partSize': str(partSize)}
        if description:
            kwargs['archiveDescription'] = description

        response = self._call('initiate_multipart_upload', **kwargs)
        uploadId = response['uploadId']
        logger.info(f"Initiated multipart upload {uploadId} to {vaultName} (part size {partSize})")
        return uploadId

    def uploadPart(self, vaultName, uploadId, rangeStart, rangeEnd, totalSize, data, checksum):
        response = self._call(
            'upload_multipart_part',
            vaultName=vaultName,
            uploadId=uploadId,
            range=contentRange(rangeStart, rangeEnd, totalSize),
            checksum=checksum,
            body=data,
        )

        returned = response.get('checksum')
        if returned and returned != checksum:
            raise RemoteServiceError(
                f'Part {rangeStart}-{rangeEnd} acknowledged with checksum {returned}, expected {checksum}',
                'upload_multipart_part', 'ChecksumMismatch', response
            )
        return response

    def completeUpload(self, vaultName, uploadId, totalSize, checksum) -> CompletedUpload:
        response = self._call(
            'complete_multipart_upload',
            vaultName=vaultName,
            uploadId=uploadId,
            archiveSize=str(totalSize),
            checksum=checksum,
        )
        return CompletedUpload(response['archiveId'], response.get('location'))

    def deleteArchive(self, vaultName, archiveId):
        self._call('delete_archive', vaultName=vaultName, archiveId=archiveId)
        logger.info(f"Deleted archive {archiveId} from {vaultName}")

    def initiateRetrieval(self, vaultName, archiveId=None, description=None):
        """
        Start an archive retrieval job, or an inventory job when archiveId is None. Returns the job id.
        """
        if archiveId:
            parameters = {'Type': 'archive-retrieval', 'ArchiveId': archiveId}
        else:
            parameters = {'Type': 'inventory-retrieval', 'Format': 'JSON'}
        if description:
            parameters['Description'] = description

        response = self._call('initiate_job', vaultName=vaultName, jobParameters=parameters)
        return response['jobId']

    def describeJob(self, vaultName, jobId):
        return self._call('describe_job', vaultName=vaultName, jobId=jobId)

    def getJobOutput(self, vaultName, jobId):
        return self._call('get_job_output', vaultName=vaultName, jobId=jobId)


def waitForJob(client, vaultName, jobId, pollInterval=JOB_POLL_INTERVAL, sleep=time.sleep, cancelToken=None):
    """
    Poll a retrieval job until it completes. Returns the final job description.

    Raises:
        RemoteServiceError: If the job finishes in any status other than Succeeded
    """
    while True:
        if cancelToken is not None:
            cancelToken.raiseIfCancelled('polling job')

        job = client.describeJob(vaultName, jobId)
        if job.get('Completed'):
            status = job.get('StatusCode')
            if status != 'Succeeded':
                raise RemoteServiceError(
                    f"Job {jobId} finished with status {status}: {job.get('StatusMessage')}", 'describe_job', status
                )
            return job

        logger.debug(f"Job {jobId} still {job.get('StatusCode')}, checking again in {pollInterval}s")
        sleep(pollInterval)
