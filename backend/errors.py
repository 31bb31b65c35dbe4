# backend/errors.py
from typing import Optional


class MockupError(Exception):
    """Base class for every failure raised by the generation pipeline."""


class ConfigError(MockupError):
    pass


class ProviderError(MockupError):
    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ProviderUnavailable(ProviderError):
    """Transport failure, timeout, or a 5xx / 429 answer from the provider."""


class ProviderRejected(ProviderError):
    """Provider answered with a non-retryable client error (auth, validation...)."""


class GenerationFailed(MockupError):
    def __init__(self, prediction_id: str, status: str, detail: Optional[str] = None):
        msg = f"Prediction {prediction_id} ended with status {status}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)
        self.prediction_id = prediction_id
        self.status = status
        self.detail = detail


class GenerationTimeout(MockupError):
    def __init__(self, prediction_id: str, timeout: float):
        super().__init__(f"Prediction {prediction_id} did not finish within {timeout:g}s")
        self.prediction_id = prediction_id
        self.timeout = timeout


class MissingOutput(MockupError):
    pass


class FetchFailed(MockupError):
    pass


class NormalizationFailed(MockupError):
    pass


class ArchiveFailed(MockupError):
    pass


class EmptyBatch(MockupError):
    pass
