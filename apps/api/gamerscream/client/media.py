"""Interfaces of the real-time media transport the session engine drives.

The engine only needs a handful of things from a room: connect/disconnect, the
participant set, per-track gain and an event emitter. Any SFU client that can
be adapted to these protocols will do.
"""
from __future__ import annotations

import json
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Protocol

PARTICIPANT_CONNECTED = "participant_connected"
PARTICIPANT_DISCONNECTED = "participant_disconnected"
TRACK_MUTED = "track_muted"
TRACK_UNMUTED = "track_unmuted"
ACTIVE_SPEAKERS_CHANGED = "active_speakers_changed"
TRACK_SUBSCRIBED = "track_subscribed"
TRACK_UNSUBSCRIBED = "track_unsubscribed"
DISCONNECTED = "disconnected"


class AudioTrack(Protocol):
    kind: str

    def set_volume(self, gain: float) -> None:
        """Set playback gain, 0.0 to 1.0."""


class Participant(Protocol):
    identity: str
    name: Optional[str]
    metadata: Optional[str]
    is_speaking: bool
    is_microphone_enabled: bool


class LocalParticipant(Participant, Protocol):
    def set_microphone_enabled(self, enabled: bool) -> Awaitable[None]: ...


class RemoteParticipant(Participant, Protocol):
    def audio_tracks(self) -> Iterable[AudioTrack]: ...


class MediaRoom(Protocol):
    local_participant: LocalParticipant
    remote_participants: Mapping[str, RemoteParticipant]

    def on(self, event: str, handler: Callable[..., Any]) -> None: ...

    def connect(self, url: str, token: str) -> Awaitable[None]: ...

    def disconnect(self) -> Awaitable[None]: ...


class AudioSink(Protocol):
    """Where subscribed remote audio is played."""

    def attach(self, track: AudioTrack, identity: str) -> None: ...

    def detach(self, track: AudioTrack, identity: str) -> None: ...


RoomFactory = Callable[[Optional[str]], MediaRoom]
"""Build a room for the given microphone device id (``None`` for the default)."""


def participant_device_id(participant: Participant) -> str:
    """Device id the server embedded in the participant's metadata, or ``""``."""

    if not participant.metadata:
        return ""
    try:
        meta = json.loads(participant.metadata)
    except ValueError:
        return ""
    if isinstance(meta, dict) and meta.get("deviceId"):
        return str(meta["deviceId"])
    return ""


def volume_key(participant: Participant) -> str:
    return participant_device_id(participant) or participant.identity


def display_name(participant: Participant) -> str:
    return participant.name or participant.identity
