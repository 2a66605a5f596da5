# classes/errors.py


class GalleryError(Exception):
    pass


class ValidationFailure(GalleryError):
    """
    Rejected locally, before any state mutation or network call.
    """


class DocumentStoreError(GalleryError):
    pass


class AiServiceError(GalleryError):
    """
    The external AI service failed (transport, server error, unusable reply).
    Distinct from a successful call that simply produced no useful result.
    """


class AiRateLimitedError(AiServiceError):
    """
    The external AI service refused the call for quota reasons (HTTP 429 /
    RESOURCE_EXHAUSTED). Callers should communicate a cooldown, not a failure.
    """


class RequestInFlightError(GalleryError):
    pass


class CooldownActiveError(GalleryError):
    def __init__(self, message: str, remaining_seconds: float = 0.0):
        super().__init__(message)
        self.remaining_seconds = remaining_seconds
