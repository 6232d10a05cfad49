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
import queue
import threading

from coldstore.Errors import UploadCancelledError, UnexpectedError
from coldstore.Kernel import getLogger
from coldstore.Models import DigestQueueEntry

logger = getLogger(__name__)


class DigestQueue:
    """
    Unbounded FIFO that the producer closes when it has nothing more to send.

    Iterating blocks on receive and stops once the queue is closed and empty.
    """

    _CLOSED = object()

    def __init__(self):
        self._queue = queue.SimpleQueue()
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self):
        return self._closed

    def put(self, entry):
        with self._lock:
            if self._closed:
                raise UnexpectedError('Digest queue is already closed')
            self._queue.put(entry)

    def close(self):
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(self._CLOSED)

    def __iter__(self):
        while True:
            entry = self._queue.get()
            if entry is self._CLOSED:
                return
            yield entry


class BackgroundDigestWorker(threading.Thread):
    """
    Folds every uploaded buffer into a whole-file SHA-256, off the upload loop.

    Buffers are consumed in exactly the order they were submitted. The session's
    digestComplete event fires once the producer has called finish() and the
    queue has drained, or once the worker stops on an error or cancellation.
    """

    def __init__(self, session, digestFactory=hashlib.sha256, cancelToken=None):
        super().__init__(name=f'DigestWorker-{session.archive.name}', daemon=True)
        self.session = session
        self.cancelToken = cancelToken
        self.digestQueue = DigestQueue()
        self.digest = digestFactory()

        self.bytesConsumed = 0
        self.entriesConsumed = 0
        self.e = None
        self.cancelled = False
        self._stopping = threading.Event()

    def _shouldDiscard(self):
        if self._stopping.is_set():
            return True
        return self.cancelToken is not None and self.cancelToken.isCancelled()

    def submit(self, buffer, length=None):
        if length is None:
            length = len(buffer)
        self.digestQueue.put(DigestQueueEntry(buffer, length))

    def finish(self):
        """Tell the worker no more buffers are coming."""
        self.session.producerDone.set()
        self.digestQueue.close()

    def run(self):
        try:
            for entry in self.digestQueue:
                if self._shouldDiscard():
                    # Keep draining until the sentinel, dropping buffers unhashed
                    self.cancelled = True
                    continue

                buffer, length = entry
                if length == len(buffer):
                    self.digest.update(buffer)
                else:
                    self.digest.update(memoryview(buffer)[:length])

                self.bytesConsumed += length
                self.entriesConsumed += 1

            logger.debug(f"Digest worker drained: {self.entriesConsumed} buffers, {self.bytesConsumed} bytes")
        except Exception as e:
            self.e = e
            logger.error(f"Digest worker failed after {self.bytesConsumed} bytes: {e}")
        finally:
            self.session.digestComplete.set()

    def wait(self, timeout=None):
        """
        Block until the worker signals completion and return the whole-file digest as uppercase hex.

        Raises:
            UploadCancelledError: If buffers were discarded because of cancellation
            UnexpectedError: If the worker failed or did not finish within timeout
        """
        if not self.session.digestComplete.wait(timeout):
            raise UnexpectedError(f'Digest worker did not finish within {timeout} seconds')

        if self.e is not None:
            raise UnexpectedError(f'Whole-file digest failed: {self.e}', cause=self.e)

        if self.cancelled:
            raise UploadCancelledError('Cancelled while computing the whole-file digest')

        return self.digest.hexdigest().upper()

    def abort(self):
        """
        Stop the worker without a result. Used on failure paths so no thread outlives the session.
        """
        self._stopping.set()
        self.digestQueue.close()
        if self.is_alive():
            self.join(timeout=5)
            if self.is_alive():
                logger.warning("Digest worker did not terminate cleanly")
