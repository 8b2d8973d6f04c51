from typing import Any, Dict


class RegistrationError(Exception):
    """Base class for errors raised by the IP registration pipeline."""

    # Pipeline stage the error aborted, set by the orchestrator
    stage: str | None = None


class ValidationError(RegistrationError):
    """Client input is out of contract. Mapped to HTTP 400."""

    def __init__(self, message: str, details: Dict[str, Any] | None = None):
        self.details = details or {}
        super().__init__(message)


class ContentFetchError(RegistrationError):
    """An IPFS payload could not be fetched from the gateway (recoverable)."""

    def __init__(self, cid: str, cause: Exception):
        self.cid = cid
        self.cause = cause
        super().__init__(f"Failed to fetch CID {cid} from IPFS: {cause}")


class PublishError(RegistrationError):
    """A metadata document could not be pinned to IPFS."""


class ChainSubmissionError(RegistrationError):
    """A Story Protocol transaction failed to submit, reverted, or could not be decoded."""


class ReconciliationWarning(RegistrationError):
    """The record store write did not land. Never leaves the records service."""

    def __init__(self, status: str, message: str):
        self.status = status
        super().__init__(message)


class ConfigurationError(RuntimeError):
    """Startup configuration is unusable; the process must not serve requests."""
