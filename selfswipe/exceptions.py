"""Exception hierarchy for the generation engine."""


class SelfSwipeError(Exception):
    """Base exception for the SelfSwipe engine."""


class ConfigurationError(SelfSwipeError):
    """Raised when a required setting (such as the API key) is missing."""


class ImageReadError(SelfSwipeError):
    """Raised when an image reference cannot be resolved to bytes."""


class UploadTooLargeError(SelfSwipeError):
    """Raised when an uploaded image exceeds the configured size ceiling."""


class ProviderError(SelfSwipeError):
    """Base class for failures reported by the generative provider."""


class TransientProviderError(ProviderError):
    """Rate limit, overload, quota or timeout. Safe to retry."""


class FatalProviderError(ProviderError):
    """Auth, configuration or malformed request. Never retried."""


class AnalysisError(FatalProviderError):
    """Raised when analysis keeps failing after every retry."""


class MalformedResponseError(SelfSwipeError):
    """Raised when no prompt can be recovered from a provider response."""


class NoImageInResponseError(SelfSwipeError):
    """The provider answered without any inline image data.

    ``reason`` is ``"blocked"`` when the provider flagged the output (safety
    filter, prohibited content), otherwise ``"no_image"``.
    """

    def __init__(self, message: str, reason: str = "no_image", text: str = ""):
        super().__init__(message)
        self.reason = reason
        self.text = text
