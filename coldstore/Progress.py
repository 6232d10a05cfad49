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

import datetime
import time

from tqdm import tqdm

from coldstore.Kernel import getLogger
from coldstore.Settings import PROGRESS_REPORT_INTERVAL
from coldstore.Utils import flushPrint, formatSize, toMiB

logger = getLogger(__name__)


class BitmathTqdm(tqdm):
    """tqdm bar whose counters and rate use formatSize instead of tqdm's own unit scaling."""

    BAR_FORMAT = '{desc}: {percentage:3.0f}%|{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}, {rate_fmt}]'

    def __init__(self, *args, sizeFormatter=formatSize, **kwargs):
        self.sizeFormatter = sizeFormatter
        kwargs.setdefault('bar_format', self.BAR_FORMAT)
        super().__init__(*args, unit='B', unit_scale=False, **kwargs)

    @property
    def format_dict(self):
        values = super().format_dict

        rate = values.get('rate') or 0
        values['rate_fmt'] = f'{self.sizeFormatter(int(rate))}/sec' if rate > 0 else '0/sec'
        values['n_fmt'] = self.sizeFormatter(values.get('n', 0))
        total = values.get('total')
        values['total_fmt'] = '?' if total is None else self.sizeFormatter(total)

        return values


class Progress:
    """
    Throttled transfer progress: one line each time another reportInterval bytes have moved.

    Rate is MiB over seconds elapsed since the first update; the estimate of time
    remaining is elapsed * (100 / percent - 1). Purely informational.
    """

    def __init__(
        self,
        totalSize,
        loggerCallback=flushPrint,
        reportInterval=PROGRESS_REPORT_INTERVAL,
        useBar=False,
        description='Upload',
        clock=time.monotonic,
        wallClock=datetime.datetime.now,
    ):
        self.totalSize = totalSize
        self.loggerCallback = loggerCallback
        self.reportInterval = reportInterval
        self.description = description
        self.clock = clock
        self.wallClock = wallClock

        self.transferred = 0
        self.lastReported = 0
        self.startTime = None

        self.pbar = BitmathTqdm(total=totalSize or None, desc=description, leave=True, ncols=100) if useBar else None
        self.useBar = useBar

    def update(self, bytesTransferred, forceLog=False):
        """
        Record the cumulative byte count. Returns the emitted line, or None when throttled.
        """
        if self.startTime is None:
            self.startTime = self.clock()

        delta = bytesTransferred - self.transferred
        self.transferred = bytesTransferred

        if self.useBar:
            if self.pbar is not None:
                if delta > 0:
                    self.pbar.update(delta)
                if self.transferred >= self.totalSize > 0:
                    self.finishBar()
            return None

        if self.transferred - self.lastReported < self.reportInterval and not forceLog:
            return None

        self.lastReported = self.transferred
        line = self.formatLine()
        self.loggerCallback(line)
        return line

    def getElapsedTime(self):
        return 0.0 if self.startTime is None else self.clock() - self.startTime

    def getPercentage(self):
        if self.totalSize <= 0:
            return 0.0
        return self.transferred * 100.0 / self.totalSize

    def getRate(self):
        """MiB per second since the first update, or None before a whole second has passed."""
        seconds = int(self.getElapsedTime())
        return toMiB(self.transferred) / seconds if seconds > 0 else None

    def getRemainingTime(self):
        """Seconds left at the average rate so far, or None while nothing has been transferred."""
        percent = self.getPercentage()
        if percent <= 0:
            return None
        return max(0.0, int(self.getElapsedTime()) * (100.0 / percent - 1))

    def formatLine(self):
        rate = self.getRate()
        remaining = self.getRemainingTime()

        return '{time}: {percent:.2f}% ({rate} MB/s, {remaining} remaining)'.format(
            time=self.wallClock().strftime('%H:%M:%S'),
            percent=self.getPercentage(),
            rate='<unknown>' if rate is None else f'{rate:.2f}',
            remaining='' if remaining is None else datetime.timedelta(seconds=int(remaining)),
        )

    def finishBar(self):
        if self.pbar is None:
            return
        pbar, self.pbar = self.pbar, None
        try:
            pbar.refresh()
            pbar.close()
        except (ValueError, AttributeError) as e:
            logger.debug(f"Progress bar cleanup failed: {e}")

    def __enter__(self):
        return self

    def __exit__(self, excType, excVal, excTb):
        self.finishBar()
