"""
Exceptions for the reel template editor.

Each error carries a short user-facing message and optional technical
details for the logs:

    try:
        template = template_model.load(descriptors)
    except InvalidTemplate as e:
        logger.warning("template.rejected", reason=e.technical_details)
"""

from typing import Optional


class ReelRemixError(Exception):
    """Base exception for all reel editor errors."""

    def __init__(self, user_message: str, technical_details: Optional[str] = None):
        self.user_message = user_message
        self.technical_details = technical_details or ""
        super().__init__(user_message)

    def __str__(self) -> str:
        return self.user_message


class InvalidTemplate(ReelRemixError):
    """Shot descriptors were empty or malformed."""


class ShotNotFound(ReelRemixError):
    """A shot id did not exist in the template."""

    def __init__(self, shot_id: str):
        self.shot_id = shot_id
        super().__init__(f"Shot {shot_id} not found in template")


class MediaNotFound(ReelRemixError):
    """A media id did not resolve in the media registry."""

    def __init__(self, media_id: str):
        self.media_id = media_id
        super().__init__(f"Media {media_id} not found")


class TemplateGenerationFailed(ReelRemixError):
    """The template generator errored or returned an unusable response.

    Always retryable: the session goes back to the import screen.
    """

    retryable = True

    def __init__(self, technical_details: Optional[str] = None):
        super().__init__(
            "Failed to generate video template. Please try again.",
            technical_details=technical_details,
        )


class SessionStateError(ReelRemixError):
    """An operation was requested in a phase that does not allow it."""
