"""Exception hierarchy for the insight service."""


class InsightError(Exception):
    """Base class for errors raised by the insights package."""


class ParseStrategyError(InsightError):
    """One parse strategy could not extract a prediction array."""

    def __init__(self, strategy: str, message: str):
        super().__init__(f"{strategy}: {message}")
        self.strategy = strategy
        self.message = message


class LLMUnavailableError(InsightError):
    """An LLM-only analysis was requested but no client is configured."""


class LLMCallError(InsightError):
    """The model call failed after all retries or timed out."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class NoProfilesError(InsightError):
    """There are no customer profiles to analyse."""


class SegmentParseError(InsightError):
    """The model's custom-segment answer could not be turned into a segment."""
