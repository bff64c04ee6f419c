"""Channels domain module - content types and the compatibility resolver"""

from .content_type import ChannelPurpose, ContentType, EditType, Language
from .compatibility import (
    CompatibilityResolver,
    are_types_compatible,
    compatible_targets,
    edit_preserving_targets,
    get_resolver,
    is_publication_type,
    publication_content_types,
    source_content_types,
)

__all__ = [
    "ChannelPurpose",
    "ContentType",
    "EditType",
    "Language",
    "CompatibilityResolver",
    "are_types_compatible",
    "compatible_targets",
    "edit_preserving_targets",
    "get_resolver",
    "is_publication_type",
    "publication_content_types",
    "source_content_types",
]
