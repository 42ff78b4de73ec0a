"""Engine-specific exceptions."""


class EngineError(Exception):
    """Base exception for lingo_engine."""
    pass


class InferenceError(EngineError):
    """Local inference server errors."""
    pass


class InferenceUnavailableError(InferenceError):
    """Inference server unreachable, connection reset or timed out."""
    pass


class InferenceServerError(InferenceError):
    """Inference server answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class UnknownModelError(EngineError):
    """Model id is neither in the catalog nor known to the inference server."""
    pass


class LLMError(EngineError):
    """Cloud LLM gateway errors (auth, quota, timeout, etc.)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SettingsError(EngineError):
    """Model settings could not be persisted."""
    pass
