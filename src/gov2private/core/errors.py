from __future__ import annotations


class Gov2PrivateError(Exception):
    code = "internal_error"
    status_code = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class RunNotFoundError(Gov2PrivateError, LookupError):
    code = "run_not_found"
    status_code = 404


class InvalidReferenceError(Gov2PrivateError, ValueError):
    """A role id, job index or bullet index that does not exist on the run."""

    code = "invalid_reference"
    status_code = 400


class InvalidTransitionError(Gov2PrivateError):
    code = "invalid_transition"
    status_code = 409


class ConfigurationError(Gov2PrivateError):
    """No model provider is usable; raised before any pipeline step runs."""

    code = "configuration_error"
    status_code = 503


class ModelCallError(Gov2PrivateError):
    code = "model_call_failed"
    status_code = 502
