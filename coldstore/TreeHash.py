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

from typing import List

from coldstore.Settings import TREE_HASH_LEAF_SIZE


class TreeHasher:
    """
    SHA-256 tree hash as the archive store verifies it.

    Leaves are SHA-256 digests of consecutive 1 MiB spans. Each level above pairs
    adjacent digests left to right and hashes their concatenation; a trailing
    digest without a sibling moves up unchanged. The last remaining digest is the
    root.

    The same reduction produces the whole-archive checksum when it is fed the
    ordered per-part roots instead of leaves.
    """

    @staticmethod
    def leafHashes(data, leafSize=TREE_HASH_LEAF_SIZE) -> List[bytes]:
        """
        Digest every leafSize span of data. Empty input still yields one digest, over zero bytes.
        """
        view = memoryview(data)
        if len(view) == 0:
            return [hashlib.sha256(b'').digest()]

        return [hashlib.sha256(view[offset:offset + leafSize]).digest() for offset in range(0, len(view), leafSize)]

    @staticmethod
    def reduce(digests) -> bytes:
        """
        Reduce an ordered list of digests to a single root.

        Raises:
            ValueError: If digests is empty
        """
        level = list(digests)
        if not level:
            raise ValueError('Cannot compute a tree hash from zero digests')

        while len(level) > 1:
            nextLevel = []
            for i in range(0, len(level), 2):
                if i + 1 < len(level):
                    nextLevel.append(hashlib.sha256(level[i] + level[i + 1]).digest())
                else:
                    # Odd one out
                    nextLevel.append(level[i])
            level = nextLevel

        return level[0]

    @classmethod
    def treeHash(cls, data) -> bytes:
        return cls.reduce(cls.leafHashes(data))

    @classmethod
    def treeHashStream(cls, stream, leafSize=TREE_HASH_LEAF_SIZE) -> bytes:
        """
        Tree hash of everything left in a binary stream, read one leaf at a time.
        """
        digests = []
        while True:
            block = stream.read(leafSize)
            if not block:
                break

            # Top up short reads so every leaf but the last spans exactly leafSize bytes
            while len(block) < leafSize:
                more = stream.read(leafSize - len(block))
                if not more:
                    break
                block += more

            digests.append(hashlib.sha256(block).digest())

        if not digests:
            digests.append(hashlib.sha256(b'').digest())

        return cls.reduce(digests)

    @staticmethod
    def toHex(digest) -> str:
        return digest.hex()
