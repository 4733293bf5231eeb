from .internal import DownloadIntent, MediaMetadata
from .response import ErrorResponse, MediaInfo, StreamVariant

__all__ = ["DownloadIntent", "ErrorResponse", "MediaInfo", "MediaMetadata", "StreamVariant"]
