"""Periodic refresh of the channel list and occupancy counts."""
from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Callable, List, Optional, Set

import httpx

from ..schemas.channels import ChannelDescriptor
from .api import GateClient, GateClientError

logger = logging.getLogger(__name__)

ChannelsListener = Callable[[List[ChannelDescriptor]], None]


def default_channels(count: int = 5) -> List[ChannelDescriptor]:
    return [ChannelDescriptor(channel=ch, name=f"ch-{ch}", room_id=f"ch-{ch}") for ch in range(1, count + 1)]


class ChannelPoller:
    """Keeps the last known channel list.

    Occupancy is pulled, never pushed, so it can be up to one interval stale.
    A failed poll keeps the previous list rather than blanking it.
    """

    def __init__(
        self,
        api: GateClient,
        *,
        interval_seconds: float = 5.0,
        on_change: Optional[ChannelsListener] = None,
    ) -> None:
        self._api = api
        self._interval = interval_seconds
        self._on_change = on_change
        self._channels: List[ChannelDescriptor] = default_channels()
        self._task: Optional[asyncio.Task[None]] = None
        self._pending: Set[asyncio.Task[None]] = set()

    @property
    def channels(self) -> List[ChannelDescriptor]:
        return list(self._channels)

    async def refresh(self) -> List[ChannelDescriptor]:
        try:
            channels = await self._api.list_rooms()
        except (GateClientError, httpx.HTTPError, ValueError) as exc:
            logger.debug("Channel refresh failed, keeping last known list: %s", exc)
            return self.channels
        self._channels = channels
        if self._on_change:
            self._on_change(self.channels)
        return self.channels

    def trigger(self) -> None:
        """Schedule an immediate refresh without waiting for it."""

        task = asyncio.get_running_loop().create_task(self.refresh())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _loop(self) -> None:
        while True:
            await self.refresh()
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._loop())

    async def stop(self) -> None:
        tasks = [task for task in [self._task, *self._pending] if task is not None]
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task
        self._task = None
        self._pending.clear()
