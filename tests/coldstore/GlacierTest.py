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
import unittest
from unittest.mock import MagicMock, call

from botocore.exceptions import ClientError, EndpointConnectionError

from coldstore.Errors import RemoteServiceError, UploadCancelledError
from coldstore.Glacier import GlacierVaultClient, contentRange, errorCode, waitForJob
from coldstore.Models import CancellationToken, CompletedUpload


def clientError(code, operation='UploadMultipartPart', message='failed'):
    return ClientError({'Error': {'Code': code, 'Message': message}}, operation)


class GlacierVaultClientTest(unittest.TestCase):

    def setUp(self):
        self.boto = MagicMock()
        self.client = GlacierVaultClient('us-east-1', client=self.boto)

    def testContentRange(self):
        self.assertEqual(contentRange(0, 134217727, 314572800), 'bytes 0-134217727/314572800')

    def testInitiateUpload(self):
        self.boto.initiate_multipart_upload.return_value = {'uploadId': 'upload-1'}

        uploadId = self.client.initiateUpload('vault', 134217728, 'backup.tar')

        self.assertEqual(uploadId, 'upload-1')
        self.boto.initiate_multipart_upload.assert_called_once_with(
            accountId='-', vaultName='vault', partSize='134217728', archiveDescription='backup.tar'
        )

    def testUploadPartSendsRangeAndChecksum(self):
        self.boto.upload_multipart_part.return_value = {'checksum': 'abc123'}

        self.client.uploadPart('vault', 'upload-1', 0, 1023, 2048, b'\0' * 1024, 'abc123')

        self.boto.upload_multipart_part.assert_called_once_with(
            accountId='-', vaultName='vault', uploadId='upload-1', range='bytes 0-1023/2048',
            checksum='abc123', body=b'\0' * 1024
        )

    def testUploadPartChecksumMismatch(self):
        self.boto.upload_multipart_part.return_value = {'checksum': 'ffff'}

        with self.assertRaises(RemoteServiceError) as context:
            self.client.uploadPart('vault', 'upload-1', 0, 1023, 2048, b'\0' * 1024, 'abc123')

        self.assertEqual(context.exception.code, 'ChecksumMismatch')

    def testClientErrorIsMapped(self):
        self.boto.upload_multipart_part.side_effect = clientError('InvalidParameterValueException', message='bad range')

        with self.assertRaises(RemoteServiceError) as context:
            self.client.uploadPart('vault', 'upload-1', 0, 1023, 2048, b'', 'abc')

        e = context.exception
        self.assertEqual(e.operation, 'upload_multipart_part')
        self.assertEqual(e.code, 'InvalidParameterValueException')
        self.assertIn('bad range', str(e))
        self.assertEqual(e.exitCode, 4)

    def testConnectionErrorIsMapped(self):
        self.boto.complete_multipart_upload.side_effect = EndpointConnectionError(endpoint_url='https://glacier')

        with self.assertRaises(RemoteServiceError) as context:
            self.client.completeUpload('vault', 'upload-1', 2048, 'abc')

        self.assertIsNone(context.exception.code)

    def testCompleteUpload(self):
        self.boto.complete_multipart_upload.return_value = {'archiveId': 'archive-1', 'location': '/-/vaults/v/archives/1'}

        completed = self.client.completeUpload('vault', 'upload-1', 2048, 'abc')

        self.assertEqual(completed, CompletedUpload('archive-1', '/-/vaults/v/archives/1'))
        self.boto.complete_multipart_upload.assert_called_once_with(
            accountId='-', vaultName='vault', uploadId='upload-1', archiveSize='2048', checksum='abc'
        )

    def testInitiateRetrieval(self):
        self.boto.initiate_job.return_value = {'jobId': 'job-1'}

        self.assertEqual(self.client.initiateRetrieval('vault', 'archive-1'), 'job-1')
        self.client.initiateRetrieval('vault')

        self.assertEqual(self.boto.initiate_job.call_args_list, [
            call(accountId='-', vaultName='vault', jobParameters={'Type': 'archive-retrieval', 'ArchiveId': 'archive-1'}),
            call(accountId='-', vaultName='vault', jobParameters={'Type': 'inventory-retrieval', 'Format': 'JSON'}),
        ])

    def testDeleteArchive(self):
        self.client.deleteArchive('vault', 'archive-1')
        self.boto.delete_archive.assert_called_once_with(accountId='-', vaultName='vault', archiveId='archive-1')

    def testErrorCode(self):
        self.assertEqual(errorCode(clientError('ThrottlingException')), 'ThrottlingException')
        self.assertIsNone(errorCode(ValueError('x')))


class WaitForJobTest(unittest.TestCase):

    def testPollsUntilSucceeded(self):
        client = MagicMock()
        client.describeJob.side_effect = [
            {'Completed': False, 'StatusCode': 'InProgress'},
            {'Completed': False, 'StatusCode': 'InProgress'},
            {'Completed': True, 'StatusCode': 'Succeeded', 'ArchiveSizeInBytes': 10},
        ]
        sleeps = []

        job = waitForJob(client, 'vault', 'job-1', pollInterval=30, sleep=sleeps.append)

        self.assertEqual(job['ArchiveSizeInBytes'], 10)
        self.assertEqual(sleeps, [30, 30])

    def testFailedJobRaises(self):
        client = MagicMock()
        client.describeJob.return_value = {'Completed': True, 'StatusCode': 'Failed', 'StatusMessage': 'gone'}

        with self.assertRaises(RemoteServiceError) as context:
            waitForJob(client, 'vault', 'job-1', sleep=lambda s: None)

        self.assertEqual(context.exception.code, 'Failed')
        self.assertIn('gone', str(context.exception))

    def testCancelledBeforePolling(self):
        client = MagicMock()
        token = CancellationToken()
        token.cancel()

        with self.assertRaises(UploadCancelledError):
            waitForJob(client, 'vault', 'job-1', sleep=lambda s: None, cancelToken=token)

        client.describeJob.assert_not_called()


if __name__ == '__main__':
    unittest.main()
