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
import io
import json
import os
import shutil
import tempfile
import unittest
from unittest.mock import MagicMock

from coldstore.Downloader import downloadArchive
from coldstore.Errors import RemoteServiceError, ValidationError
from coldstore.Inventory import retrieveInventory
from coldstore.TreeHash import TreeHasher
from coldstore.Utils import ONE_MB

from tests.coldstore.TreeHashTest import patternBytes


def createJobClient(body, job=None, checksum=None, jobId='job-1'):
    client = MagicMock()
    client.initiateRetrieval.return_value = jobId
    client.describeJob.return_value = job or {'Completed': True, 'StatusCode': 'Succeeded'}
    client.getJobOutput.return_value = {'body': io.BytesIO(body), 'checksum': checksum}
    return client


class DownloadArchiveTest(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.outputPath = os.path.join(self.tmpdir, 'restored.bin')

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def testDownloadWritesVerifiedFile(self):
        data = patternBytes(2 * ONE_MB + 5)
        checksum = TreeHasher.toHex(TreeHasher.treeHash(data))
        client = createJobClient(data, {
            'Completed': True, 'StatusCode': 'Succeeded', 'ArchiveSizeInBytes': len(data), 'SHA256TreeHash': checksum
        })

        written = downloadArchive(client, 'vault', 'archive-1', self.outputPath, sleep=lambda s: None,
                                  progressFactory=None)

        self.assertEqual(written, len(data))
        with open(self.outputPath, 'rb') as f:
            self.assertEqual(f.read(), data)
        client.initiateRetrieval.assert_called_once_with('vault', 'archive-1')
        client.getJobOutput.assert_called_once_with('vault', 'job-1')

    def testChecksumMismatch(self):
        data = patternBytes(1000)
        client = createJobClient(data, checksum='00' * 32)

        with self.assertRaises(RemoteServiceError) as context:
            downloadArchive(client, 'vault', 'archive-1', self.outputPath, sleep=lambda s: None,
                            progressFactory=None)

        self.assertEqual(context.exception.code, 'ChecksumMismatch')

    def testTruncatedBody(self):
        data = patternBytes(1000)
        client = createJobClient(data, {'Completed': True, 'StatusCode': 'Succeeded', 'ArchiveSizeInBytes': 2000})

        with self.assertRaises(RemoteServiceError) as context:
            downloadArchive(client, 'vault', 'archive-1', self.outputPath, sleep=lambda s: None,
                            progressFactory=None)

        self.assertEqual(context.exception.code, 'IncompleteBody')

    def testExistingJobSkipsInitiate(self):
        data = b'restored'
        client = createJobClient(data, checksum=TreeHasher.toHex(TreeHasher.treeHash(data)), jobId='unused')

        downloadArchive(client, 'vault', None, self.outputPath, jobId='job-7', sleep=lambda s: None,
                        progressFactory=None)

        client.initiateRetrieval.assert_not_called()
        client.describeJob.assert_called_with('vault', 'job-7')

    def testProgressIsReported(self):
        data = patternBytes(3 * ONE_MB)
        client = createJobClient(data, {'Completed': True, 'StatusCode': 'Succeeded', 'ArchiveSizeInBytes': len(data)})
        progress = MagicMock()
        sizes = []

        def progressFactory(totalSize, description):
            sizes.append((totalSize, description))
            return progress

        downloadArchive(client, 'vault', 'archive-1', self.outputPath, sleep=lambda s: None,
                        progressFactory=progressFactory)

        self.assertEqual(sizes, [(len(data), 'Download')])
        self.assertEqual([c.args[0] for c in progress.update.call_args_list], [ONE_MB, 2 * ONE_MB, 3 * ONE_MB])
        progress.finishBar.assert_called_once()

    def testMissingArguments(self):
        client = MagicMock()
        for args in (('', 'archive-1', self.outputPath), ('vault', None, self.outputPath), ('vault', 'a', None)):
            with self.subTest(args=args):
                with self.assertRaises(ValidationError):
                    downloadArchive(client, *args)
        self.assertEqual(client.method_calls, [])


class RetrieveInventoryTest(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.outputPath = os.path.join(self.tmpdir, 'inventory.json')

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def testInventoryWritten(self):
        inventory = {
            'VaultARN': 'arn:aws:glacier:us-east-1:123:vaults/vault',
            'ArchiveList': [{'ArchiveId': 'a1', 'Size': 10}, {'ArchiveId': 'a2', 'Size': 20}],
        }
        client = createJobClient(json.dumps(inventory).encode('utf-8'))
        lines = []

        archives = retrieveInventory(client, 'vault', self.outputPath, sleep=lambda s: None, loggerCallback=lines.append)

        self.assertEqual([a['ArchiveId'] for a in archives], ['a1', 'a2'])
        with open(self.outputPath, 'r', encoding='utf-8') as f:
            self.assertEqual(json.load(f), inventory)
        client.initiateRetrieval.assert_called_once_with('vault')
        self.assertEqual(lines, ['Inventory job started, job id: job-1'])

    def testInvalidInventory(self):
        client = createJobClient(b'<html>not json</html>')

        with self.assertRaises(RemoteServiceError) as context:
            retrieveInventory(client, 'vault', self.outputPath, sleep=lambda s: None, loggerCallback=lambda line: None)

        self.assertEqual(context.exception.code, 'InvalidInventory')
        self.assertFalse(os.path.exists(self.outputPath))


if __name__ == '__main__':
    unittest.main()
