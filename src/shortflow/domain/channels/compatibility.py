"""Content-type compatibility between source and publication channels.

Default rule (``same_language``): a short rolled from a source channel may be
routed to a publication channel of the same language family, whatever its
edit state. Cross-language routing is never allowed.

    VA_SANS_EDIT → {VA_SANS_EDIT, VA_AVEC_EDIT}
    VF_AVEC_EDIT → {VF_SANS_EDIT, VF_AVEC_EDIT}
    VO_*         → {VO_SANS_EDIT, VO_AVEC_EDIT}

Alternative rule (``edit_preserving``): VA/VF match exactly, VO keeps its
edit state and may be published in VA or VF.

Both resolvers are total over ContentType and fail closed: anything that is
not one of the six known values yields an empty set.
"""

from typing import Any, Callable, Dict, FrozenSet, List, Optional

from .content_type import ContentType, EditType, Language

CompatibilityResolver = Callable[[Any], FrozenSet[ContentType]]


def _coerce(value: Any) -> Optional[ContentType]:
    try:
        return ContentType(value)
    except (ValueError, TypeError):
        return None


def compatible_targets(source_type: Any) -> FrozenSet[ContentType]:
    """Return the publication content types a source content type may be routed to.

    Args:
        source_type: ContentType (or its string value) of the source channel

    Returns:
        Both edit variants of the source language; empty set for unknown input

    Example:
        >>> sorted(t.value for t in compatible_targets(ContentType.VF_AVEC_EDIT))
        ['VF_AVEC_EDIT', 'VF_SANS_EDIT']
        >>> compatible_targets("XX_SANS_EDIT")
        frozenset()
    """
    content_type = _coerce(source_type)
    if content_type is None:
        return frozenset()
    return frozenset(
        ContentType.of(content_type.language, edit_type) for edit_type in EditType
    )


EDIT_PRESERVING_MAP: Dict[ContentType, FrozenSet[ContentType]] = {
    ContentType.VA_SANS_EDIT: frozenset({ContentType.VA_SANS_EDIT}),
    ContentType.VA_AVEC_EDIT: frozenset({ContentType.VA_AVEC_EDIT}),
    ContentType.VF_SANS_EDIT: frozenset({ContentType.VF_SANS_EDIT}),
    ContentType.VF_AVEC_EDIT: frozenset({ContentType.VF_AVEC_EDIT}),
    ContentType.VO_SANS_EDIT: frozenset({ContentType.VA_SANS_EDIT, ContentType.VF_SANS_EDIT}),
    ContentType.VO_AVEC_EDIT: frozenset({ContentType.VA_AVEC_EDIT, ContentType.VF_AVEC_EDIT}),
}


def edit_preserving_targets(source_type: Any) -> FrozenSet[ContentType]:
    """Edit-preserving rule: the edit state is kept, only VO may change language."""
    content_type = _coerce(source_type)
    if content_type is None:
        return frozenset()
    return EDIT_PRESERVING_MAP.get(content_type, frozenset())


RESOLVERS: Dict[str, CompatibilityResolver] = {
    "same_language": compatible_targets,
    "edit_preserving": edit_preserving_targets,
}


def get_resolver(mode: str) -> CompatibilityResolver:
    """Get a compatibility resolver by configuration name.

    Raises:
        ValueError: If the mode is not registered
    """
    resolver = RESOLVERS.get(mode)
    if resolver is None:
        raise ValueError(
            f"Unknown compatibility mode '{mode}'. "
            f"Available modes: {sorted(RESOLVERS)}"
        )
    return resolver


def are_types_compatible(
    source_type: Any,
    target_type: Any,
    resolver: CompatibilityResolver = compatible_targets,
) -> bool:
    """Check if a target channel type may receive shorts from a source type."""
    target = _coerce(target_type)
    if target is None:
        return False
    return target in resolver(source_type)


def publication_content_types() -> List[ContentType]:
    """Content types available for publication channels (VO excluded)."""
    return [t for t in ContentType if t.language is not Language.VO]


def source_content_types() -> List[ContentType]:
    """Content types available for source channels (all of them)."""
    return list(ContentType)


def is_publication_type(content_type: Any) -> bool:
    return _coerce(content_type) in publication_content_types()
