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
import unittest
from unittest.mock import MagicMock, patch

from coldstore.Utils import formatSize, getEnv, sendException, toMiB, ONE_KB, ONE_MB, ONE_GB, ONE_TB


class FormatSizeTest(unittest.TestCase):
    """Test cases for the formatSize utility function."""

    def testUnits(self):
        testCases = [
            # (size_in_bytes, expected_unit, description)
            (0, 'Byte', "zero bytes"),
            (512, 'Bytes', "bytes plural"),
            (ONE_KB * 1.5, 'K', "1.5 kilobytes"),
            (ONE_MB * 128, 'M', "default part size"),
            (ONE_GB * 1.5, 'G', "1.5 gigabytes"),
            (ONE_TB * 2.5, 'T', "2.5 terabytes"),
        ]

        for size, unit, description in testCases:
            with self.subTest(size=size, description=description):
                self.assertIn(unit, formatSize(size))

    def testDecimalPlaces(self):
        self.assertEqual(formatSize(ONE_MB * 500), '524M')
        self.assertEqual(formatSize(ONE_GB * 5), '5.4G')
        self.assertEqual(formatSize(ONE_GB * 1.234, decimal=2), '1.33G')

    def testPluralHandling(self):
        self.assertNotIn('Bytes', formatSize(1, plural=False))
        self.assertIn('Bytes', formatSize(2, plural=True))


class ToMiBTest(unittest.TestCase):

    def testConversion(self):
        self.assertEqual(toMiB(ONE_MB), 1.0)
        self.assertEqual(toMiB(8 * ONE_MB), 8.0)
        self.assertAlmostEqual(toMiB(ONE_MB // 2), 0.5)
        self.assertEqual(toMiB(0), 0.0)


class GetEnvTest(unittest.TestCase):

    def testTypesFollowDefault(self):
        env = {
            'COLDSTORE_TEST_INT': '42',
            'COLDSTORE_TEST_FLOAT': '0.25',
            'COLDSTORE_TEST_BOOL': 'True',
            'COLDSTORE_TEST_STR': 'vault',
        }
        with patch.dict(os.environ, env):
            self.assertEqual(getEnv('COLDSTORE_TEST_INT', 0), 42)
            self.assertEqual(getEnv('COLDSTORE_TEST_FLOAT', 1.0), 0.25)
            self.assertIs(getEnv('COLDSTORE_TEST_BOOL', False), True)
            self.assertEqual(getEnv('COLDSTORE_TEST_STR', 'x'), 'vault')
            self.assertEqual(getEnv('COLDSTORE_TEST_STR', None), 'vault')

    def testFallsBackToDefault(self):
        with patch.dict(os.environ, {'COLDSTORE_TEST_INT': 'many'}):
            self.assertEqual(getEnv('COLDSTORE_TEST_INT', 7), 7)
        self.assertEqual(getEnv('COLDSTORE_TEST_UNSET', 128 * ONE_MB), 128 * ONE_MB)


class SendExceptionTest(unittest.TestCase):

    def testPrintsAndLogs(self):
        logger = MagicMock()
        error = RuntimeError('disk on fire')

        with patch('coldstore.Utils.flushPrint') as printer, patch.dict(os.environ, {'RAISE_EXCEPTION': 'False'}):
            sendException(logger, error, action='Try again later')

        self.assertEqual(
            [c.args[0] for c in printer.call_args_list],
            ['Oops, something went wrong: disk on fire', 'Try again later']
        )
        logger.exception.assert_called_once_with(error)

    def testReraisesWhenRequested(self):
        with patch('coldstore.Utils.flushPrint'), patch.dict(os.environ, {'RAISE_EXCEPTION': 'True'}):
            with self.assertRaises(RuntimeError):
                sendException(MagicMock(), RuntimeError('boom'))


if __name__ == '__main__':
    unittest.main()
