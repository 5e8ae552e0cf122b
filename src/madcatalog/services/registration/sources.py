"""
External source adapters.

Each external service MADs are registered from is described by a small
adapter: how its video ids look, what its source records are called and
where a video lives. The registration workflow is generic over these.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Dict

from madcatalog.models.enums import SourceKind


class SourceAdapter(ABC):
    """
    Capability interface of one external source.

    Examples
    --------
    >>> adapter = get_source_adapter(SourceKind.NICOVIDEO)
    >>> adapter.validate_external_id("sm9")
    True
    >>> adapter.url_for("sm9")
    'https://www.nicovideo.jp/watch/sm9'
    """

    kind: SourceKind

    @property
    @abstractmethod
    def source_record_kind(self) -> str:
        """Name of this source's record kind, e.g. ``NicovideoVideoSource``."""
        pass

    @abstractmethod
    def validate_external_id(self, raw_id: str) -> bool:
        """Return True if ``raw_id`` is a well-formed id on this source."""
        pass

    @abstractmethod
    def url_for(self, external_id: str) -> str:
        """Return the public URL of a video on this source."""
        pass


class _PatternSourceAdapter(SourceAdapter):
    """Adapter whose ids are validated by a full-match regular expression."""

    pattern: re.Pattern[str]
    record_kind: str
    url_template: str

    @property
    def source_record_kind(self) -> str:
        return self.record_kind

    def validate_external_id(self, raw_id: str) -> bool:
        return bool(self.pattern.fullmatch(raw_id))

    def url_for(self, external_id: str) -> str:
        return self.url_template.format(id=external_id)


class NicovideoSourceAdapter(_PatternSourceAdapter):
    """Nicovideo: ``sm``, ``nm`` or ``so`` followed by digits."""

    kind = SourceKind.NICOVIDEO
    pattern = re.compile(r"(sm|nm|so)\d+")
    record_kind = "NicovideoVideoSource"
    url_template = "https://www.nicovideo.jp/watch/{id}"


class YoutubeSourceAdapter(_PatternSourceAdapter):
    """YouTube: 11 characters from the URL-safe base64 alphabet."""

    kind = SourceKind.YOUTUBE
    pattern = re.compile(r"[A-Za-z0-9_-]{11}")
    record_kind = "YoutubeVideoSource"
    url_template = "https://www.youtube.com/watch?v={id}"


class SoundcloudSourceAdapter(_PatternSourceAdapter):
    """SoundCloud: numeric track id."""

    kind = SourceKind.SOUNDCLOUD
    pattern = re.compile(r"\d+")
    record_kind = "SoundcloudVideoSource"
    url_template = "https://api.soundcloud.com/tracks/{id}"


class BilibiliSourceAdapter(_PatternSourceAdapter):
    """Bilibili: ``BV`` followed by 10 alphanumerics."""

    kind = SourceKind.BILIBILI
    pattern = re.compile(r"BV[A-Za-z0-9]{10}")
    record_kind = "BilibiliVideoSource"
    url_template = "https://www.bilibili.com/video/{id}"


SOURCE_ADAPTERS: Dict[SourceKind, SourceAdapter] = {
    adapter.kind: adapter
    for adapter in (
        NicovideoSourceAdapter(),
        YoutubeSourceAdapter(),
        SoundcloudSourceAdapter(),
        BilibiliSourceAdapter(),
    )
}


def get_source_adapter(source: SourceKind) -> SourceAdapter:
    """Return the adapter registered for ``source``."""
    return SOURCE_ADAPTERS[source]
