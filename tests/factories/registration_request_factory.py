"""
Factory for registration request models using factory_boy.

Provides submission inputs with valid Nicovideo ids by default; use
``source`` and ``source_id`` overrides for the other sources.
"""

from __future__ import annotations

import factory
from factory import Faker

from madcatalog.models.enums import SourceKind
from madcatalog.models.registration import (
    RegistrationRequestCreate,
    SemitaggingIntent,
    TaggingIntent,
)
from tests.factories.id_factory import SourceIdFactory


class TaggingIntentFactory(factory.Factory):
    """Factory for TaggingIntent models."""

    class Meta:
        model = TaggingIntent

    tag_id = factory.Faker("uuid4", cast_to=None)
    note = None


class SemitaggingIntentFactory(factory.Factory):
    """Factory for SemitaggingIntent models."""

    class Meta:
        model = SemitaggingIntent

    name = factory.Sequence(lambda n: f"semitag-{n}")
    note = None


class RegistrationRequestCreateFactory(factory.Factory):
    """Factory for RegistrationRequestCreate inputs."""

    class Meta:
        model = RegistrationRequestCreate

    source = SourceKind.NICOVIDEO
    source_id = factory.Sequence(lambda n: f"sm{n + 1}")
    title = Faker("sentence", nb_words=4)
    thumbnail_url = Faker("image_url")
    taggings = factory.LazyFunction(list)
    semitaggings = factory.LazyFunction(list)


class YoutubeRequestCreateFactory(RegistrationRequestCreateFactory):
    """Factory for YouTube submissions."""

    source = SourceKind.YOUTUBE
    source_id = factory.LazyFunction(SourceIdFactory.create_youtube_id)
