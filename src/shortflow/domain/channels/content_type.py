"""Channel content types.

A content type is a (language, edit state) pair. Source channels may carry any
of the six values; publication channels only carry VA/VF values.
"""

from enum import Enum


class Language(str, Enum):
    """Language family of a channel."""
    VA = "VA"  # English version
    VF = "VF"  # French version
    VO = "VO"  # Original version (source channels only)


class EditType(str, Enum):
    """Whether a channel publishes raw or edited shorts."""
    SANS_EDIT = "SANS_EDIT"
    AVEC_EDIT = "AVEC_EDIT"


class ContentType(str, Enum):
    """Content type of a YouTube channel (language × edit state).

    Values are stored as TEXT in the database and must match exactly.
    """
    VA_SANS_EDIT = "VA_SANS_EDIT"
    VA_AVEC_EDIT = "VA_AVEC_EDIT"
    VF_SANS_EDIT = "VF_SANS_EDIT"
    VF_AVEC_EDIT = "VF_AVEC_EDIT"
    VO_SANS_EDIT = "VO_SANS_EDIT"
    VO_AVEC_EDIT = "VO_AVEC_EDIT"

    @property
    def language(self) -> Language:
        return Language(self.value.split("_", 1)[0])

    @property
    def edit_type(self) -> EditType:
        return EditType(self.value.split("_", 1)[1])

    @classmethod
    def of(cls, language: Language, edit_type: EditType) -> "ContentType":
        """Build the content type for a language and edit state.

        Example:
            >>> ContentType.of(Language.VF, EditType.AVEC_EDIT)
            <ContentType.VF_AVEC_EDIT: 'VF_AVEC_EDIT'>
        """
        return cls(f"{Language(language).value}_{EditType(edit_type).value}")

    @property
    def label(self) -> str:
        edit_label = "Avec Édition" if self.edit_type is EditType.AVEC_EDIT else "Sans Édition"
        return f"{self.language.value} {edit_label}"


class ChannelPurpose(str, Enum):
    """Role of a channel in the pipeline."""
    SOURCE = "SOURCE"            # Shorts are rolled from it
    PUBLICATION = "PUBLICATION"  # Edited shorts are published on it
