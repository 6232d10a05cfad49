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
import datetime
import threading

from collections import namedtuple
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List, Optional

from coldstore.Errors import UploadCancelledError

DigestQueueEntry = namedtuple('DigestQueueEntry', ['buffer', 'length'])

CompletedUpload = namedtuple('CompletedUpload', ['archiveId', 'location'])


class UploadState(Enum):
    INIT = auto()
    STREAMING = auto()
    DRAINING = auto()
    FINALIZING = auto()
    DONE = auto()
    FAILED = auto()


@dataclass(frozen=True)
class Archive:
    """The local file being uploaded. Fixed once the upload starts."""
    path: str
    size: int
    name: str

    @classmethod
    def fromPath(cls, path):
        return cls(path=path, size=os.path.getsize(path), name=os.path.basename(path))


@dataclass
class Part:
    """
    One contiguous byte range of an archive.

    Every part but the last is exactly the session's part size long.
    """
    index: int
    offset: int
    length: int
    data: bytes
    treeHash: Optional[bytes] = None

    @property
    def lastByte(self) -> int:
        return self.offset + self.length - 1

    def contentRange(self, totalSize) -> str:
        return f'bytes {self.offset}-{self.lastByte}/{totalSize}'


@dataclass
class UploadSession:
    """
    Mutable state for a single upload, shared by the coordinator and its digest worker.
    """
    archive: Archive
    vaultName: str
    partSize: int
    uploadId: Optional[str] = None
    transferredBytes: int = 0
    partHashes: List[bytes] = field(default_factory=list)
    state: UploadState = UploadState.INIT
    producerDone: threading.Event = field(default_factory=threading.Event)
    digestComplete: threading.Event = field(default_factory=threading.Event)


@dataclass(frozen=True)
class ArchiveRecord:
    archiveId: str
    vaultName: str
    description: str
    size: int
    sha256Digest: str
    locationUri: str
    uploadedAtUtc: str

    @staticmethod
    def utcNow() -> str:
        return datetime.datetime.now(datetime.timezone.utc).isoformat()

    def toItem(self) -> dict:
        """Render as a DynamoDB item, keeping the attribute names existing tables already use."""
        return {
            'ArchiveId': {'S': self.archiveId},
            'VaultName': {'S': self.vaultName},
            'ArchiveDescription': {'S': self.description},
            'ArchiveSize': {'N': str(self.size)},
            'ArchiveHash': {'S': self.sha256Digest},
            'ArchiveUri': {'S': self.locationUri},
            'Uploaded': {'S': self.uploadedAtUtc},
        }


@dataclass
class UploadResult:
    """
    Outcome of an upload as a value: either an archive id and location, or the error that ended it.
    """
    archiveId: Optional[str] = None
    location: Optional[str] = None
    record: Optional[ArchiveRecord] = None
    error: Optional[BaseException] = None
    state: UploadState = UploadState.INIT

    @property
    def ok(self) -> bool:
        return self.error is None and self.state == UploadState.DONE

    @property
    def exitCode(self) -> int:
        if self.ok:
            return 0
        return getattr(self.error, 'exitCode', 1)

    def unwrap(self):
        if self.error is not None:
            raise self.error
        return self.archiveId, self.location


class CancellationToken:
    """Cooperative cancellation flag checked at every blocking point of a transfer."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    def isCancelled(self) -> bool:
        return self._event.is_set()

    def raiseIfCancelled(self, where=None):
        if self._event.is_set():
            raise UploadCancelledError(f'Cancelled{f" before {where}" if where else ""}')
