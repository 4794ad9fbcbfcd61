"""Data models for the KDP cover backend"""

from web.backend.models.cover import (
    AssembleRequest,
    AssembleResponse,
    ColorsRequest,
    ColorsResponse,
    DimensionsRequest,
    DimensionsResponse,
    HistoryListResponse,
    HistoryRecord,
    TrimSizeInfo,
)

__all__ = [
    "AssembleRequest",
    "AssembleResponse",
    "ColorsRequest",
    "ColorsResponse",
    "DimensionsRequest",
    "DimensionsResponse",
    "TrimSizeInfo",
    "HistoryListResponse",
    "HistoryRecord",
]
