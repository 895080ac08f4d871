"""Exception hierarchy shared by the core, the collaborators and the surfaces."""

from __future__ import annotations


class LabelseekError(Exception):
    """Base class for every error raised by labelseek."""


# -- Text -------------------------------------------------------------------


class EmptyTextError(LabelseekError, ValueError):
    """Raised when a text contains no tokens to normalize."""


class EmptyQueryError(EmptyTextError):
    """Raised when a search query is empty or whitespace-only."""


# -- Store ------------------------------------------------------------------


class CorpusError(LabelseekError):
    """Base class for corpus persistence errors."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class CorpusNotFoundError(CorpusError):
    """The corpus file does not exist."""


class CorpusFormatError(CorpusError):
    """The corpus file does not match the record schema."""


class CorpusWriteError(CorpusError):
    """The corpus could not be written."""


# -- Collaborators ----------------------------------------------------------


class ClassificationError(LabelseekError):
    """Classifying a single image failed."""


class ImageReadError(ClassificationError):
    """The image (or directory) could not be read."""


class UnsupportedImageError(ClassificationError):
    """The image format is not one of the accepted formats."""


class ImageTooLargeError(ClassificationError):
    """The image exceeds the configured size limits."""


class InferenceError(ClassificationError):
    """The inference model failed or returned unusable output."""
