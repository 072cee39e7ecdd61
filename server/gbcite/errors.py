from __future__ import annotations


class GbciteError(Exception):
    status_code = 500
    public_message = "Server error, please try again later."


class InputValidationError(GbciteError):
    status_code = 400
    public_message = "Please provide valid reference text."


class ConfigurationError(GbciteError):
    status_code = 500
    public_message = "Server configuration error, please try again later."


class ProviderError(GbciteError):
    """The model endpoint call failed; the message never includes provider output."""

    status_code = 500
    public_message = "Server error, please try again later."

    def __init__(self, message: str, *, upstream_status: int | None = None) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status


class InvalidCredentialError(ProviderError):
    status_code = 502
    public_message = "The model API key is invalid."


class RateLimitedError(ProviderError):
    status_code = 429
    public_message = "Too many requests, please try again later."


class ProviderFaultError(ProviderError):
    status_code = 502
    public_message = "The model service failed, please try again later."
