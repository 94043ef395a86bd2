from streamgate.domain.enums.media_kind import MediaKind, StreamType
from streamgate.domain.enums.failure_kind import ToolFailureKind
__all__ = [
    "MediaKind",
    "StreamType",
    "ToolFailureKind",
]
