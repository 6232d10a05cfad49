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

import hashlib
import os
import time

from coldstore.Digest import BackgroundDigestWorker
from coldstore.Errors import ArchiveIOError, ColdStoreError, UnexpectedError, ValidationError
from coldstore.Glacier import GlacierVaultClient
from coldstore.Kernel import getLogger
from coldstore.Metadata import DynamoArchiveStore, persistRecord
from coldstore.Models import Archive, ArchiveRecord, UploadResult, UploadSession, UploadState
from coldstore.Progress import Progress
from coldstore.Reader import ChunkReader, countParts, validatePartSize
from coldstore.Settings import SettingsGetter
from coldstore.TreeHash import TreeHasher
from coldstore.Utils import formatSize

logger = getLogger(__name__)


class UploadCoordinator:
    """
    Drives one chunked upload: INIT -> STREAMING -> DRAINING -> FINALIZING -> DONE, or FAILED.

    Parts are read, tree-hashed and uploaded one after another on the calling
    thread. Each uploaded buffer is handed to a BackgroundDigestWorker, which
    computes the whole-file SHA-256 concurrently. The upload is only completed
    after that worker has drained, and the archive record is only written after
    the store has confirmed completion.
    """

    def __init__(
        self,
        client,
        recordStore=None,
        partSize=None,
        progressFactory=None,
        cancelToken=None,
        digestFactory=hashlib.sha256,
        maxRetries=None,
        backoff=None,
        sleep=time.sleep,
    ):
        settings = SettingsGetter.getInstance()

        self.client = client
        self.recordStore = recordStore
        self.partSize = partSize or settings.partSize
        self.progressFactory = progressFactory
        self.cancelToken = cancelToken
        self.digestFactory = digestFactory
        self.maxRetries = settings.metadataMaxRetries if maxRetries is None else maxRetries
        self.backoff = settings.metadataBackoff if backoff is None else backoff
        self.sleep = sleep

        self.session = None
        self.worker = None
        self.progress = None

    @property
    def state(self):
        return self.session.state if self.session else UploadState.INIT

    def _transition(self, state):
        logger.debug(f"Upload {self.session.archive.name}: {self.session.state.name} -> {state.name}")
        self.session.state = state

    def _checkCancelled(self, where):
        if self.cancelToken is not None:
            self.cancelToken.raiseIfCancelled(where)

    def validate(self, vaultName, filePath):
        if not vaultName:
            raise ValidationError('No vault specified')

        if not filePath or not os.path.isfile(filePath):
            raise ValidationError(f"Invalid file '{filePath}'")

        validatePartSize(self.partSize)

        archive = Archive.fromPath(filePath)
        if archive.size == 0:
            raise ValidationError(f"File '{filePath}' is empty")

        return archive

    def run(self, vaultName, filePath) -> ArchiveRecord:
        """
        Upload filePath to vaultName and persist its archive record.

        Raises:
            ValidationError: Before any network activity, for a missing vault or file
            ArchiveIOError: If reading the file fails
            RemoteServiceError: If any remote call fails; the upload is abandoned
            ThrottlingError: If the archive record could not be written after all retries
        """
        archive = self.validate(vaultName, filePath)
        self.session = UploadSession(archive=archive, vaultName=vaultName, partSize=self.partSize)

        try:
            return self._run()
        except BaseException:
            self._transition(UploadState.FAILED)
            if self.worker is not None:
                self.worker.abort()
            raise
        finally:
            if self.progress is not None:
                self.progress.finishBar()

    def _run(self):
        session = self.session
        archive = session.archive

        if self.recordStore is not None:
            self.recordStore.ensureTable()

        logger.info(
            f"Uploading {archive.name} ({formatSize(archive.size)}) to {session.vaultName} in "
            f"{countParts(archive.size, session.partSize)} parts"
        )

        try:
            stream = open(archive.path, 'rb')
        except OSError as e:
            raise ArchiveIOError(f'Cannot open {archive.path}: {e}', archive.path) from e

        with stream:
            self._checkCancelled('initiating upload')
            session.uploadId = self.client.initiateUpload(session.vaultName, session.partSize, archive.name)

            self.worker = BackgroundDigestWorker(session, digestFactory=self.digestFactory, cancelToken=self.cancelToken)
            self.worker.start()

            if self.progressFactory is not None:
                self.progress = self.progressFactory(archive.size)
                # Clock starts with the first part, not after it
                self.progress.update(0)

            self._transition(UploadState.STREAMING)
            self._stream(ChunkReader(stream, archive.size, session.partSize, archive.path))

        self._transition(UploadState.DRAINING)
        self.worker.finish()
        fileHash = self.worker.wait()

        if self.worker.bytesConsumed != archive.size:
            raise UnexpectedError(
                f'Digest covered {self.worker.bytesConsumed} bytes but {archive.name} is {archive.size} bytes'
            )

        self._transition(UploadState.FINALIZING)
        record = self._finalize(fileHash)

        self._transition(UploadState.DONE)
        return record

    def _stream(self, reader):
        session = self.session

        for part in reader:
            self._checkCancelled(f'part {part.index}')

            part.treeHash = TreeHasher.treeHash(part.data)
            self.client.uploadPart(
                session.vaultName,
                session.uploadId,
                part.offset,
                part.lastByte,
                session.archive.size,
                part.data,
                TreeHasher.toHex(part.treeHash),
            )
            session.partHashes.append(part.treeHash)

            self.worker.submit(part.data, part.length)

            session.transferredBytes += part.length
            logger.debug(f"Uploaded part {part.index}: {part.contentRange(session.archive.size)}")

            if self.progress is not None:
                self.progress.update(session.transferredBytes)

    def _finalize(self, fileHash):
        session = self.session
        archive = session.archive

        archiveChecksum = TreeHasher.toHex(TreeHasher.reduce(session.partHashes))

        self._checkCancelled('completing upload')
        completed = self.client.completeUpload(session.vaultName, session.uploadId, archive.size, archiveChecksum)
        logger.info(f"Upload complete, archive id {completed.archiveId}, file hash {fileHash}")

        record = ArchiveRecord(
            archiveId=completed.archiveId,
            vaultName=session.vaultName,
            description=archive.name,
            size=archive.size,
            sha256Digest=fileHash,
            locationUri=completed.location,
            uploadedAtUtc=ArchiveRecord.utcNow(),
        )

        if self.recordStore is not None:
            try:
                persistRecord(self.recordStore, record, self.maxRetries, self.backoff, self.sleep)
            except ColdStoreError as e:
                # The archive exists remotely even though its record does not
                e.record = record
                raise

        return record


def upload(
    vaultName,
    filePath,
    region=None,
    client=None,
    recordStore=None,
    partSize=None,
    useBar=False,
    cancelToken=None,
    **kwargs
) -> UploadResult:
    """
    Upload a file and return an UploadResult. Errors are returned, not raised.
    """
    settings = SettingsGetter.getInstance()
    region = region or settings.region

    try:
        if (client is None or recordStore is None) and not region:
            raise ValidationError('AWS region not specified')

        if client is None:
            client = GlacierVaultClient(region)
        if recordStore is None:
            recordStore = DynamoArchiveStore(region, settings.archiveTable)

        coordinator = UploadCoordinator(
            client,
            recordStore,
            partSize=partSize,
            progressFactory=lambda totalSize: Progress(
                totalSize, reportInterval=settings.progressInterval, useBar=useBar
            ),
            cancelToken=cancelToken,
            **kwargs
        )
        record = coordinator.run(vaultName, filePath)
        return UploadResult(record.archiveId, record.locationUri, record, state=UploadState.DONE)

    except ColdStoreError as e:
        logger.error(f"Upload of {filePath} failed: {e}")
        record = getattr(e, 'record', None)
        return UploadResult(
            archiveId=record.archiveId if record else None,
            location=record.locationUri if record else None,
            record=record,
            error=e,
            state=UploadState.FAILED,
        )
    except Exception as e:
        logger.exception(e)
        return UploadResult(
            error=UnexpectedError(f'Upload of {filePath} failed: {e}', cause=e), state=UploadState.FAILED
        )
