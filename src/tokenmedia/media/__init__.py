"""Media classification, discovery, dimensions and transcoding."""

from .media_classifier import (
    MediaClassifier,
    media_type_from_content_type,
    raw_format_to_media_type,
    should_swap,
    sniff_media_type,
)
from .media_dimensions import DimensionsError, parse_iframe_dimensions, parse_svg_dimensions
from .media_discovery import Keywords, find_image_and_animation_urls
from .media_transcoder import FFmpegTranscoder, TranscodeError, Transcoder

__all__ = [
    "DimensionsError",
    "FFmpegTranscoder",
    "Keywords",
    "MediaClassifier",
    "TranscodeError",
    "Transcoder",
    "find_image_and_animation_urls",
    "media_type_from_content_type",
    "parse_iframe_dimensions",
    "parse_svg_dimensions",
    "raw_format_to_media_type",
    "should_swap",
    "sniff_media_type",
]
