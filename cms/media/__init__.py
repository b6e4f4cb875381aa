"""Media asset bookkeeping."""

from .dimensions import HeaderImageDecoder, ImageDecoder, read_image_size
from .registry import (
    MediaFilters,
    MediaRegistry,
    MediaStats,
    file_type_of,
    file_url,
    format_file_size,
)

__all__ = [
    "HeaderImageDecoder",
    "ImageDecoder",
    "MediaFilters",
    "MediaRegistry",
    "MediaStats",
    "file_type_of",
    "file_url",
    "format_file_size",
    "read_image_size",
]
