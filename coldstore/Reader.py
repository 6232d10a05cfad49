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

from typing import Iterator, Optional

from coldstore.Errors import ArchiveIOError, ValidationError
from coldstore.Kernel import getLogger
from coldstore.Models import Part
from coldstore.Settings import DEFAULT_PART_SIZE, MIN_PART_SIZE, MAX_PART_SIZE
from coldstore.Utils import formatSize

logger = getLogger(__name__)


def validatePartSize(partSize):
    """
    The store accepts part sizes of 1 MiB times a power of two, up to 4 GiB.
    """
    if not isinstance(partSize, int) or partSize < MIN_PART_SIZE or partSize > MAX_PART_SIZE:
        raise ValidationError(f'Part size {partSize} must be between {MIN_PART_SIZE} and {MAX_PART_SIZE} bytes')

    if partSize % MIN_PART_SIZE != 0:
        raise ValidationError(f'Part size {partSize} is not a whole number of MiB')

    mebibytes = partSize // MIN_PART_SIZE
    if mebibytes & (mebibytes - 1) != 0:
        raise ValidationError(f'Part size {partSize} is not a power-of-two number of MiB')

    return partSize


def countParts(totalSize, partSize):
    return -(-totalSize // partSize)


class ChunkReader:
    """
    Sequential reader that cuts a stream into ordered, contiguous parts.

    Each call to next() returns exactly partSize bytes unless the file ends first;
    offsets advance by the number of bytes returned, with nothing re-read or skipped.
    """

    def __init__(self, stream, totalSize, partSize=DEFAULT_PART_SIZE, path=None):
        self.stream = stream
        self.totalSize = totalSize
        self.partSize = partSize
        self.path = path or getattr(stream, 'name', None)

        self.offset = 0
        self.index = 0
        self.exhausted = False

    def _read(self, size) -> bytes:
        try:
            return self.stream.read(size)
        except OSError as e:
            raise ArchiveIOError(f'Failed to read {self.path} at offset {self.offset}: {e}', self.path, self.offset) from e

    def next(self) -> Optional[Part]:
        if self.exhausted:
            return None

        chunks = []
        received = 0

        # Short reads are legal for some streams, keep going until the part is full or EOF
        while received < self.partSize:
            chunk = self._read(self.partSize - received)
            if not chunk:
                break
            chunks.append(chunk)
            received += len(chunk)

        if received == 0:
            self.exhausted = True
            logger.debug(f"End of stream after {self.index} parts ({formatSize(self.offset)})")
            return None

        if received < self.partSize:
            # Only the final part may be short
            self.exhausted = True

        data = chunks[0] if len(chunks) == 1 else b''.join(chunks)
        part = Part(index=self.index, offset=self.offset, length=received, data=data)

        self.offset += received
        self.index += 1

        return part

    def __iter__(self) -> Iterator[Part]:
        while True:
            part = self.next()
            if part is None:
                return
            yield part
