"""Meeting-link derivation."""

from __future__ import annotations

__all__ = ["build_meeting_link"]


def build_meeting_link(session_id: str, base_url: str, room_prefix: str) -> str:
    """Derive the video-room URL for a session.

    Pure function of the session id: reproducible, unique per session and
    computed without any network call.

    >>> build_meeting_link("abc", "https://meet.jit.si/", "room-")
    'https://meet.jit.si/room-abc'
    """
    if not session_id:
        raise ValueError("session_id is required to build a meeting link")
    return f"{base_url.rstrip('/')}/{room_prefix}{session_id}"
