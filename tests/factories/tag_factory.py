"""
Factory for tag registration inputs using factory_boy.

Provides reusable TagCreate inputs with unique names; parents, category
and semitag resolution are passed explicitly by each test.
"""

from __future__ import annotations

import factory

from madcatalog.models.enums import CategoryType
from madcatalog.models.tag import TagCreate


class TagCreateFactory(factory.Factory):
    """Factory for TagCreate inputs."""

    class Meta:
        model = TagCreate

    names = factory.Sequence(lambda n: [f"tag-{n}"])
    primary_index = 0
    explicit_parent_id = None
    implicit_parent_ids = factory.LazyFunction(list)
    is_category_tag = False
    category = None
    resolve_semitag_ids = factory.LazyFunction(list)


class CategoryTagCreateFactory(TagCreateFactory):
    """Factory for category tag inputs (MUSIC by default)."""

    names = factory.Sequence(lambda n: [f"category-{n}"])
    is_category_tag = True
    category = CategoryType.MUSIC
