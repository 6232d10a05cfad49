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

import argparse
import json
import os
import logging
import logging.config
import platform

from coldstore.Downloader import downloadArchive
from coldstore.Errors import ColdStoreError, ValidationError
from coldstore.Glacier import GlacierVaultClient
from coldstore.Inventory import retrieveInventory
from coldstore.Kernel import LOG_LEVEL_MAPPING, PUBLIC_VERSION, getLogger, configureGlobalLogLevel
from coldstore.Progress import Progress
from coldstore.Settings import SettingsGetter
from coldstore.Uploader import upload
from coldstore.Utils import ONE_MB, flushPrint, getEnv

MODES = ('upload', 'download', 'inventory', 'delete')

USAGE = 'coldstore --region <region> --vault <vaultName> --mode <upload|download|inventory|delete>'

# Third-party loggers that flood DEBUG output with wire dumps
NOISY_LOGGERS = ('botocore', 'boto3', 'urllib3', 's3transfer', 'sentry_sdk')

logger = getLogger(__name__)


def _parseEnvLine(line):
    """Return (key, value) for a KEY=value line, or None for blanks and comments."""
    line = line.strip()
    if not line or line.startswith('#'):
        return None

    key, separator, value = line.partition('=')
    if not separator or not key.strip():
        raise ValueError(line)

    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in '"\'':
        value = value[1:-1]

    return key.strip(), value


def loadEnvFile(envFilePath='.env'):
    """
    Load KEY=value pairs from a .env file. Variables already in the environment win.

    Returns:
        int: Number of variables set
    """
    if not os.path.isfile(envFilePath):
        return 0

    loaded = 0
    with open(envFilePath, 'r', encoding='utf-8') as f:
        for lineNum, line in enumerate(f, 1):
            try:
                pair = _parseEnvLine(line)
            except ValueError:
                logger.warning(f'{envFilePath}:{lineNum}: expected KEY=value, got {line.strip()!r}')
                continue

            if pair is None:
                continue

            key, value = pair
            if key in os.environ:
                logger.debug(f'{envFilePath}: {key} already set, keeping environment value')
                continue

            os.environ[key] = value
            loaded += 1

    logger.debug(f'Loaded {loaded} variables from {envFilePath}')
    return loaded


def configureLogging(logLevel):
    """
    Apply --log-level: a level name, or a JSON file for logging.config.dictConfig (for file handlers).
    Falls back to COLDSTORE_LOGGING_LEVEL. Returns what was applied, or None.
    """
    logLevel = logLevel or getEnv('COLDSTORE_LOGGING_LEVEL', None)

    try:
        if logLevel is None:
            return None

        if os.path.isfile(logLevel):
            try:
                with open(logLevel, 'r', encoding='utf-8') as configFile:
                    logging.config.dictConfig(json.load(configFile))
                logger.info(f"Logging configured from {logLevel}")
                return logLevel
            except (ValueError, KeyError, TypeError) as e:
                flushPrint(f"Cannot use logging config {logLevel}: {e}, logging at WARNING instead")
                configureGlobalLogLevel(logging.WARNING)
                return 'WARNING'

        level = LOG_LEVEL_MAPPING.get(logLevel.upper())
        if level is None:
            logger.warning(f"Unknown logging level '{logLevel}', using WARNING")
            level = logging.WARNING

        configureGlobalLogLevel(level)
        logger.info(f"Logging level set to {logging.getLevelName(level)}")
        return logLevel
    finally:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.INFO)


def showVersion():
    flushPrint(f"ColdStore v{PUBLIC_VERSION}")
    system = platform.uname()
    flushPrint(f"Architecture: {system.system} {system.release} {system.machine}")


def configureCLIParser():
    """Build the argument parser. Single-dash spellings of every option are accepted too."""

    def validatePartSizeMiB(valueStr):
        try:
            value = int(valueStr)
        except ValueError:
            raise argparse.ArgumentTypeError(f"Invalid part size: {valueStr}")
        if value <= 0:
            raise argparse.ArgumentTypeError(f"Part size {value} must be positive")
        return value * ONE_MB

    parser = argparse.ArgumentParser(
        prog='coldstore', description='Upload, download and manage archives in cold storage vaults', usage=USAGE
    )
    parser.add_argument("--region", "-region", help="AWS region of the vault, e.g. us-east-1")
    parser.add_argument("--vault", "-vault", dest="vaultName", help="Vault name")
    parser.add_argument("--mode", "-mode", type=str.lower, choices=MODES, help="Action to perform")
    parser.add_argument("--file", "-file", dest="file", help="File to upload")
    parser.add_argument("--archive-id", "-archiveId", dest="archiveId", help="Archive to download or delete")
    parser.add_argument("--outfile", "-outfile", dest="outputPath", help="Output path for download or inventory")
    parser.add_argument("--job-id", "-jobId", dest="jobId", help="Resume waiting on an existing retrieval job")
    parser.add_argument(
        "--part-size",
        dest="partSize",
        type=validatePartSizeMiB,
        help="Upload part size in MiB, a power of two between 1 and 4096 (default: 128)"
    )
    parser.add_argument(
        "--log-level",
        dest="logLevel",
        metavar="LEVEL_OR_CONFIG",
        help="Logging level (DEBUG, INFO, WARNING, ERROR) or path to a JSON logging config file"
    )
    parser.add_argument("--bar", action="store_true", default=False, help="Show a progress bar instead of log lines")
    parser.add_argument("--version", action="store_true", default=False, help="Show version and exit")

    return parser


def validateArguments(args):
    """Required parameters per mode. Raises ValidationError naming the first one missing."""
    if not args.vaultName:
        raise ValidationError('vault not specified')
    if not args.region:
        raise ValidationError('aws region not specified')
    if not args.mode:
        raise ValidationError('mode not specified')

    if args.mode == 'upload' and not args.file:
        raise ValidationError('file not specified')
    if args.mode in ('download', 'inventory') and not args.outputPath:
        raise ValidationError('output path not specified')
    if args.mode == 'delete' and not args.archiveId:
        raise ValidationError('archive id not specified')
    if args.mode == 'download' and not (args.archiveId or args.jobId):
        raise ValidationError('archive id not specified')


def processCommand(args, client=None, cancelToken=None):
    """
    Run the selected mode.

    Returns:
        int: Exit code (0 for success)
    """
    settingsGetter = SettingsGetter.getInstance()
    settingsGetter.region = args.region
    if args.partSize:
        settingsGetter.partSize = args.partSize

    if args.mode == 'upload':
        result = upload(
            args.vaultName, args.file, region=args.region, client=client, useBar=args.bar, cancelToken=cancelToken
        )
        if not result.ok:
            flushPrint(f'Upload failed: {result.error}')
            if result.archiveId:
                flushPrint(f'Archive {result.archiveId} was stored but its record was not saved.')
            return result.exitCode

        flushPrint(f"File hash: {result.record.sha256Digest}")
        flushPrint("Copy and save the following Archive ID for later retrieval.")
        flushPrint(f"Archive ID: {result.archiveId}")
        flushPrint(f"Location: {result.location}")
        return 0

    client = client or GlacierVaultClient(args.region)
    jobOptions = {'jobId': args.jobId, 'pollInterval': settingsGetter.jobPollInterval, 'cancelToken': cancelToken}

    if args.mode == 'download':
        downloadArchive(
            client, args.vaultName, args.archiveId, args.outputPath,
            progressFactory=lambda totalSize, description: Progress(
                totalSize, reportInterval=settingsGetter.progressInterval, useBar=args.bar, description=description
            ),
            **jobOptions
        )
    elif args.mode == 'inventory':
        retrieveInventory(client, args.vaultName, args.outputPath, **jobOptions)
    elif args.mode == 'delete':
        flushPrint(f"Deleting archive '{args.archiveId}' from {args.vaultName}...")
        client.deleteArchive(args.vaultName, args.archiveId)

    return 0


def runCLI(argv=None, client=None, cancelToken=None):
    parser = configureCLIParser()
    args = parser.parse_args(argv)

    configureLogging(args.logLevel)

    if args.version:
        showVersion()
        return 0

    try:
        validateArguments(args)
    except ValidationError as e:
        flushPrint(f'Error: {e}')
        flushPrint(f'Usage: {USAGE}')
        return e.exitCode

    try:
        return processCommand(args, client, cancelToken)
    except ColdStoreError as e:
        flushPrint(f'Error: {e}')
        logger.error(f"{args.mode} failed: {e}")
        return e.exitCode
