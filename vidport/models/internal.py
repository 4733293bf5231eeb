from typing import Optional

from pydantic import BaseModel

BEST_AUDIO_ID = "audio-best"
LEGACY_AUDIO_IDS = frozenset({"140", "251"})


class DownloadIntent(BaseModel):
    """Internal download intent (separated from HTTP concerns)"""
    url: str
    variant_id: Optional[str] = None
    known_title: Optional[str] = None

    @property
    def audio_only(self) -> bool:
        return self.variant_id == BEST_AUDIO_ID or self.variant_id in LEGACY_AUDIO_IDS


class MediaMetadata(BaseModel):
    """Output container and MIME type of a download"""
    ext: str
    media_type: str

    @classmethod
    def for_intent(cls, intent: DownloadIntent) -> "MediaMetadata":
        if intent.audio_only:
            return cls(ext="mp3", media_type="audio/mpeg")
        return cls(ext="mp4", media_type="video/mp4")
