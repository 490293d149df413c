"""Assembly of the final ``Media`` record from cached artifacts and source URLs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..domain.media import Dimensions, Media, MediaType
from ..media.media_dimensions import DimensionsError, parse_iframe_dimensions, parse_svg_dimensions
from ..media.media_transcoder import Transcoder
from ..storage.artifact_writer import ArtifactKind, ArtifactWriter
from ..transport.media_fetcher import MediaFetcher
from ..transport.transport_errors import TransportError

logger = logging.getLogger(__name__)

MAX_DOCUMENT_BYTES = 1024 * 1024

_AUXILIARY_TYPES = frozenset(
    {MediaType.VIDEO, MediaType.AUDIO, MediaType.TEXT, MediaType.PDF, MediaType.ANIMATION}
)


@dataclass(slots=True)
class MediaAssembler:
    writer: ArtifactWriter
    fetcher: MediaFetcher
    transcoder: Transcoder
    log: logging.Logger = field(default_factory=lambda: logger)

    async def assemble(self, media_type: MediaType, name: str, image_url: str, video_url: str) -> Media:
        if media_type in (MediaType.IMAGE, MediaType.BASE64BMP):
            media = await self._image_media(name, image_url, video_url)
        elif media_type in _AUXILIARY_TYPES:
            media = await self._auxiliary_media(media_type, name, image_url, video_url)
        elif media_type == MediaType.HTML:
            media = await self._html_media(name, image_url, video_url)
        elif media_type == MediaType.GIF:
            media = await self._gif_media(name, image_url, video_url)
        elif media_type == MediaType.SVG:
            media = await self._svg_media(name, image_url, video_url)
        else:
            media = self._raw_media(media_type, image_url, video_url)
        media.media_type = MediaType.IMAGE if media_type == MediaType.BASE64BMP else media_type
        media.media_url = self.fetcher.resolve_url(media.media_url) if media.media_url else ""
        media.thumbnail_url = self.fetcher.resolve_url(media.thumbnail_url) if media.thumbnail_url else ""
        media.dimensions = await self._dimensions(media.media_type, media.media_url, image_url, video_url)
        return media

    async def thumbnail_url(self, name: str, image_url: str) -> str:
        for kind in (ArtifactKind.IMAGE, ArtifactKind.SVG):
            url = await self.writer.serving_url(kind, name)
            if url:
                return url
        if image_url:
            return image_url
        return await self.writer.serving_url(ArtifactKind.THUMBNAIL, name)

    async def _image_media(self, name: str, image_url: str, video_url: str) -> Media:
        cached = await self.writer.serving_url(ArtifactKind.IMAGE, name)
        if cached:
            return Media(media_url=cached)
        if video_url:
            return Media(media_url=video_url, thumbnail_url=image_url)
        return Media(media_url=image_url)

    async def _auxiliary_media(self, media_type: MediaType, name: str, image_url: str, video_url: str) -> Media:
        source = await self.writer.serving_url(ArtifactKind.VIDEO, name) or video_url
        thumbnail = await self.thumbnail_url(name, image_url)
        media = Media()
        if source:
            media.media_url = source
            media.thumbnail_url = thumbnail
        elif thumbnail:
            media.media_url = thumbnail
        if media_type == MediaType.VIDEO:
            media.live_preview_url = await self.writer.serving_url(ArtifactKind.LIVE_RENDER, name)
        return media

    async def _html_media(self, name: str, image_url: str, video_url: str) -> Media:
        source = await self.writer.serving_url(ArtifactKind.VIDEO, name) or video_url
        return Media(media_url=source or image_url, thumbnail_url=await self.thumbnail_url(name, image_url))

    async def _gif_media(self, name: str, image_url: str, video_url: str) -> Media:
        source = await self.writer.serving_url(ArtifactKind.VIDEO, name) or video_url
        image = await self.writer.serving_url(ArtifactKind.IMAGE, name) or image_url
        media = Media(thumbnail_url=await self.thumbnail_url(name, image_url))
        if source:
            media.media_url = source
            if image and not media.thumbnail_url:
                media.thumbnail_url = image
        elif image:
            media.media_url = image
        return media

    async def _svg_media(self, name: str, image_url: str, video_url: str) -> Media:
        cached = await self.writer.serving_url(ArtifactKind.SVG, name)
        if cached:
            return Media(media_url=cached)
        return Media(media_url=video_url or image_url)

    def _raw_media(self, media_type: MediaType, image_url: str, video_url: str) -> Media:
        if video_url:
            return Media(media_url=video_url, thumbnail_url=image_url)
        return Media(media_url=image_url)

    async def _dimensions(self, media_type: MediaType, media_url: str, image_url: str, video_url: str) -> Dimensions:
        if not media_url or not media_type.is_valid():
            return Dimensions()
        try:
            if media_type == MediaType.SVG:
                document = await self.fetcher.read(video_url or image_url or media_url, MAX_DOCUMENT_BYTES)
                return parse_svg_dimensions(document)
            if media_type == MediaType.HTML:
                document = await self.fetcher.read(media_url, MAX_DOCUMENT_BYTES)
                return parse_iframe_dimensions(document)
        except (TransportError, DimensionsError) as exc:
            self.log.info(
                "pipeline.media.dimensions_missing",
                extra={"media_type": media_type.value, "media_url": media_url, "error": str(exc)},
            )
            return Dimensions()
        if media_type in (MediaType.TEXT, MediaType.PDF, MediaType.JSON):
            return Dimensions()
        return await self.transcoder.probe_dimensions(media_url)


__all__ = ["MediaAssembler"]
