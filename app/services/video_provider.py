import logging
import secrets
import time
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import urlencode

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class MeetingCredentials:
    meeting_id: str
    meeting_url: str
    meeting_password: str


def generate_password() -> str:
    return f"{secrets.randbelow(10**6):06d}"


def _room_name(video_class_id: int) -> str:
    return f"class_{video_class_id}_{int(time.time() * 1000)}"


class JitsiProvider:
    def __init__(self, server_url: str):
        self.server_url = server_url.rstrip("/")

    def create_meeting(self, video_class_id: int, title: str) -> MeetingCredentials:
        room = _room_name(video_class_id)
        params = urlencode(
            {
                "config.startWithAudioMuted": "true",
                "config.requireDisplayName": "true",
                "config.subject": title,
                "config.prejoinPageEnabled": "true",
            }
        )
        return MeetingCredentials(
            meeting_id=room,
            meeting_url=f"{self.server_url}/{room}?{params}",
            meeting_password=generate_password(),
        )


class WebRTCProvider:
    """In-app calls; the frontend hosts the room page."""

    def __init__(self, frontend_url: str):
        self.frontend_url = frontend_url.rstrip("/")

    def create_meeting(self, video_class_id: int, title: str) -> MeetingCredentials:
        room = _room_name(video_class_id)
        return MeetingCredentials(
            meeting_id=room,
            meeting_url=f"{self.frontend_url}/webrtc-call/{room}",
            meeting_password=generate_password(),
        )


@lru_cache()
def get_video_provider():
    provider = settings.VIDEO_PROVIDER.lower()
    if provider == "jitsi":
        return JitsiProvider(settings.VIDEO_SERVER_URL)
    if provider == "webrtc":
        return WebRTCProvider(settings.FRONTEND_URL)
    raise RuntimeError(f"Unsupported VIDEO_PROVIDER: {settings.VIDEO_PROVIDER}")
