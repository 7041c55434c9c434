"""Domain errors raised by the thumbnail generation workflow."""

from __future__ import annotations


class ThumbnailServiceError(Exception):
    """Base error; ``status_code`` is the HTTP status the API responds with."""

    status_code = 500
    public_message = "Thumbnail generation failed. Please try again."

    def __init__(self, message: str = ""):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class ValidationError(ThumbnailServiceError):
    status_code = 400
    public_message = "Invalid generation request."


class InsufficientCreditsError(ThumbnailServiceError):
    status_code = 400
    public_message = "Insufficient credits."

    def __init__(self, required: int, available: int):
        super().__init__(
            f"Insufficient credits. Required: {required}, available: {available}."
        )
        self.required = required
        self.available = available


class AccountNotFoundError(ThumbnailServiceError):
    status_code = 400
    public_message = "User profile not found."


class PromptEnhancementError(ThumbnailServiceError):
    pass


class ImageAnalysisError(ThumbnailServiceError):
    pass


class ImageGenerationError(ThumbnailServiceError):
    pass


class ArtifactPersistError(ThumbnailServiceError):
    pass
