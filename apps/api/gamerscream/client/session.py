"""Client-side voice session: connection state machine and player list reconciliation.

The player list is never patched in place. Every event from the media room
triggers a full rebuild from the room's current participant set, so the view
cannot drift from what the transport reports.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .api import GateClient
from .media import (
    ACTIVE_SPEAKERS_CHANGED,
    DISCONNECTED,
    PARTICIPANT_CONNECTED,
    PARTICIPANT_DISCONNECTED,
    TRACK_MUTED,
    TRACK_SUBSCRIBED,
    TRACK_UNMUTED,
    TRACK_UNSUBSCRIBED,
    AudioSink,
    AudioTrack,
    MediaRoom,
    RemoteParticipant,
    RoomFactory,
    display_name,
    volume_key,
)
from .poller import ChannelPoller
from .storage import FULL_VOLUME, VolumeStore, clamp_volume

logger = logging.getLogger(__name__)

AUDIO_KIND = "audio"


class ConnectionState(str, enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(slots=True)
class ConnectedPlayer:
    identity: str
    display_name: str
    is_local: bool
    is_muted: bool
    is_speaking: bool
    volume: int


PlayersListener = Callable[[List[ConnectedPlayer]], None]
NameListener = Callable[[str], None]


class _Superseded(Exception):
    """A newer connect or disconnect took over while this connect was in flight."""


class SessionEngine:
    """Owns at most one live media room and projects it into ``players``.

    ``connect`` and ``disconnect`` bump a generation counter; a connect that
    finds the counter moved on while it was awaiting the network closes the
    room it built and never becomes the current session.
    """

    def __init__(
        self,
        api: GateClient,
        room_factory: RoomFactory,
        volumes: VolumeStore,
        *,
        device_id: str,
        sink: Optional[AudioSink] = None,
        poller: Optional[ChannelPoller] = None,
        on_players_changed: Optional[PlayersListener] = None,
        on_participant_join: Optional[NameListener] = None,
        on_participant_leave: Optional[NameListener] = None,
    ) -> None:
        self._api = api
        self._room_factory = room_factory
        self._volumes = volumes
        self._device_id = device_id
        self._sink = sink
        self._poller = poller
        self._on_players_changed = on_players_changed
        self._on_participant_join = on_participant_join
        self._on_participant_leave = on_participant_leave

        self._state = ConnectionState.IDLE
        self._generation = 0
        self._room: Optional[MediaRoom] = None
        self._connecting_room: Optional[MediaRoom] = None
        self._room_name = ""
        self._players: List[ConnectedPlayer] = []
        self._is_muted = False
        self._all_muted = False
        self._pre_mute: Dict[str, int] = {}

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def players(self) -> List[ConnectedPlayer]:
        return list(self._players)

    @property
    def room_name(self) -> str:
        return self._room_name

    @property
    def is_muted(self) -> bool:
        return self._is_muted

    @property
    def all_muted(self) -> bool:
        return self._all_muted

    # connection lifecycle

    async def connect(
        self,
        username: str,
        channel: int = 1,
        mic_device_id: Optional[str] = None,
        room_id: Optional[str] = None,
        pin: Optional[str] = None,
    ) -> bool:
        """Join a channel, replacing any current session.

        Returns ``False`` when a later connect or disconnect superseded this
        one. Failures propagate to the caller after the engine is back to IDLE.
        """

        self._generation += 1
        generation = self._generation
        if self._room is not None:
            await self._teardown()

        self._state = ConnectionState.CONNECTING
        target = room_id or f"ch-{channel}"
        room: Optional[MediaRoom] = None
        try:
            details = await self._api.fetch_join_credential(username, target, self._device_id, pin)
            self._ensure_current(generation)

            room = self._room_factory(mic_device_id)
            self._connecting_room = room
            self._wire(room)
            await room.connect(details.media_endpoint, details.token)
            self._ensure_current(generation)
            await room.local_participant.set_microphone_enabled(True)
            self._ensure_current(generation)
        except _Superseded:
            logger.debug("Connect to %s superseded", target)
            if room is not None:
                if self._connecting_room is room:
                    self._connecting_room = None
                await self._close_quietly(room)
            return False
        except Exception:
            if room is not None:
                await self._close_quietly(room)
            if generation != self._generation:
                logger.debug("Superseded connect to %s failed", target, exc_info=True)
                return False
            self._connecting_room = None
            self._state = ConnectionState.IDLE
            raise

        self._connecting_room = None
        self._room = room
        self._room_name = target
        self._state = ConnectionState.CONNECTED
        self._is_muted = False
        self._rebuild(room)
        self._refresh_channels()
        logger.info("Connected to %s", target)
        return True

    async def disconnect(self) -> None:
        """Leave the current room; a no-op when there is none."""

        self._generation += 1
        if self._room is not None:
            await self._teardown()
        self._connecting_room = None
        self._state = ConnectionState.IDLE
        self._room_name = ""
        self._refresh_channels()

    async def _teardown(self) -> None:
        room = self._room
        self._room = None
        self._reset_session()
        if room is not None:
            await room.disconnect()

    def _reset_session(self) -> None:
        if self._all_muted:
            for key, volume in self._pre_mute.items():
                self._volumes.set(key, volume)
        self._pre_mute.clear()
        self._all_muted = False
        self._is_muted = False
        self._state = ConnectionState.IDLE
        self._publish([])

    def _ensure_current(self, generation: int) -> None:
        if generation != self._generation:
            raise _Superseded()

    async def _close_quietly(self, room: MediaRoom) -> None:
        try:
            await room.disconnect()
        except Exception:  # noqa: BLE001 - the room is being abandoned either way
            logger.debug("Error while closing abandoned room", exc_info=True)

    # event stream

    def _wire(self, room: MediaRoom) -> None:
        def relevant() -> bool:
            return room is self._room or room is self._connecting_room

        def on_participant_connected(participant: RemoteParticipant, *_: Any) -> None:
            if not relevant():
                return
            volume = self._saved_volume(volume_key(participant))
            for track in participant.audio_tracks():
                track.set_volume(volume / 100)
            self._rebuild(room)
            self._refresh_channels()
            if self._on_participant_join:
                self._on_participant_join(display_name(participant))

        def on_participant_disconnected(participant: RemoteParticipant, *_: Any) -> None:
            if not relevant():
                return
            self._rebuild(room)
            self._refresh_channels()
            if self._on_participant_leave:
                self._on_participant_leave(display_name(participant))

        def on_state_changed(*_: Any) -> None:
            if relevant():
                self._rebuild(room)

        def on_track_subscribed(track: AudioTrack, _publication: Any, participant: RemoteParticipant) -> None:
            if not relevant():
                return
            if track.kind == AUDIO_KIND and self._sink is not None:
                self._sink.attach(track, participant.identity)
            track.set_volume(self._saved_volume(volume_key(participant)) / 100)
            self._rebuild(room)

        def on_track_unsubscribed(track: AudioTrack, _publication: Any, participant: RemoteParticipant) -> None:
            if not relevant():
                return
            if track.kind == AUDIO_KIND and self._sink is not None:
                self._sink.detach(track, participant.identity)
            self._rebuild(room)

        def on_disconnected(*_: Any) -> None:
            if room is not self._room:
                return
            logger.info("Media session for %s ended", self._room_name)
            self._room = None
            self._room_name = ""
            self._reset_session()
            self._refresh_channels()

        room.on(PARTICIPANT_CONNECTED, on_participant_connected)
        room.on(PARTICIPANT_DISCONNECTED, on_participant_disconnected)
        room.on(TRACK_MUTED, on_state_changed)
        room.on(TRACK_UNMUTED, on_state_changed)
        room.on(ACTIVE_SPEAKERS_CHANGED, on_state_changed)
        room.on(TRACK_SUBSCRIBED, on_track_subscribed)
        room.on(TRACK_UNSUBSCRIBED, on_track_unsubscribed)
        room.on(DISCONNECTED, on_disconnected)

    def _saved_volume(self, key: str) -> int:
        """Volume to apply to a participant's audio right now.

        While everyone is muted a newcomer is silenced too, with their saved
        volume kept aside for when mute-all ends.
        """

        saved = self._volumes.get(key)
        if not self._all_muted:
            return saved
        if key not in self._pre_mute:
            self._pre_mute[key] = saved
            self._volumes.set(key, 0)
        return 0

    def _rebuild(self, room: MediaRoom) -> None:
        local = room.local_participant
        players = [
            ConnectedPlayer(
                identity=local.identity,
                display_name=display_name(local),
                is_local=True,
                is_muted=not local.is_microphone_enabled,
                is_speaking=local.is_speaking,
                volume=FULL_VOLUME,
            )
        ]
        for participant in room.remote_participants.values():
            players.append(
                ConnectedPlayer(
                    identity=participant.identity,
                    display_name=display_name(participant),
                    is_local=False,
                    is_muted=not participant.is_microphone_enabled,
                    is_speaking=participant.is_speaking,
                    volume=self._volumes.get(volume_key(participant)),
                )
            )
        self._publish(players)

    def _publish(self, players: List[ConnectedPlayer]) -> None:
        self._players = players
        if self._on_players_changed:
            self._on_players_changed(list(players))

    def _refresh_channels(self) -> None:
        if self._poller is not None:
            self._poller.trigger()

    # user actions

    def set_volume(self, identity: str, percent: float) -> None:
        room = self._room
        if room is None:
            return
        volume = clamp_volume(percent)
        key = identity
        participant = room.remote_participants.get(identity)
        if participant is not None:
            key = volume_key(participant)
            for track in participant.audio_tracks():
                track.set_volume(volume / 100)
        if self._all_muted:
            self._pre_mute[key] = volume
        self._volumes.set(key, volume)
        self._rebuild(room)

    def toggle_mute_all(self) -> bool:
        """Silence every remote participant, or restore their pre-mute volumes."""

        room = self._room
        if room is None:
            return self._all_muted

        self._all_muted = not self._all_muted
        for participant in room.remote_participants.values():
            key = volume_key(participant)
            if self._all_muted:
                self._pre_mute[key] = self._volumes.get(key)
                volume = 0
            else:
                volume = self._pre_mute.get(key, FULL_VOLUME)
            for track in participant.audio_tracks():
                track.set_volume(volume / 100)
            self._volumes.set(key, volume)
        if not self._all_muted:
            self._pre_mute.clear()
        self._rebuild(room)
        return self._all_muted

    async def toggle_mute(self) -> bool:
        """Flip the local microphone."""

        room = self._room
        if room is None:
            return self._is_muted
        muted = not self._is_muted
        await room.local_participant.set_microphone_enabled(not muted)
        self._is_muted = muted
        self._rebuild(room)
        return muted
