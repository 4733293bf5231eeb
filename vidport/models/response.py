from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class StreamVariant(BaseModel):
    """One selectable rendition of a media resource"""
    model_config = ConfigDict(populate_by_name=True)

    format_id: str = Field(..., alias="itag")
    quality_label: str = Field(..., alias="qualityLabel")
    container: str
    has_audio: bool = Field(..., alias="hasAudio")
    has_video: bool = Field(..., alias="hasVideo")
    content_length: int = Field(default=0, alias="contentLength")
    height: Optional[int] = None

    @computed_field(alias="isHighRes")
    @property
    def is_high_res(self) -> bool:
        return bool(self.height and self.height > 720)


class MediaInfo(BaseModel):
    """Metadata response"""
    title: str
    thumbnail: Optional[str] = None
    duration: Optional[str] = None
    formats: List[StreamVariant] = []


class ErrorResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    error: str
    details: Optional[str] = None
    requires_credential: Optional[bool] = Field(default=None, alias="requiresCredential")
