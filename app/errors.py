from __future__ import annotations


class QuizBotError(Exception):
    """Base error for the quiz bot."""


class CorpusLoadError(QuizBotError):
    """Raised when the question corpus cannot be read or validated."""


class ImagePathError(QuizBotError):
    """Raised when an image path points outside the images directory."""
