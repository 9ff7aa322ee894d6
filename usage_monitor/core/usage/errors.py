"""Classified failures surfaced by a usage refresh.

Every error exposes a stable ``code`` plus human readable ``message``,
``failure_reason`` and ``recovery_suggestion`` so presentation layers can
render an explanation next to the last known good data.
"""

from __future__ import annotations


class UsageApiError(Exception):
    code = "usage_error"
    message = "Could not access the Claude API."

    def __init__(self, failure_reason: str | None = None) -> None:
        super().__init__(failure_reason or self.message)
        self.failure_reason = failure_reason

    @property
    def recovery_suggestion(self) -> str | None:
        return None


class NoCredentialError(UsageApiError):
    code = "no_credential"

    def __init__(self) -> None:
        super().__init__("No API token is available.")

    @property
    def recovery_suggestion(self) -> str | None:
        return "Configure a Claude API token in Settings."


class InvalidURLError(UsageApiError):
    code = "invalid_url"

    def __init__(self, url: str) -> None:
        super().__init__("The API URL is invalid.")
        self.url = url


class HttpStatusError(UsageApiError):
    code = "http_error"

    def __init__(self, status_code: int, message: str | None = None) -> None:
        if message:
            reason = f"The server returned HTTP {status_code}: {message}"
        else:
            reason = f"The server returned HTTP {status_code}."
        super().__init__(reason)
        self.status_code = status_code
        self.body = message

    @property
    def recovery_suggestion(self) -> str | None:
        if self.status_code == 401:
            return "Your token may be invalid or expired. Try re-authenticating in Claude Code or entering a new token."
        if self.status_code == 429:
            return "You've exceeded the rate limit. Please wait before trying again."
        return None


class DecodingError(UsageApiError):
    code = "decoding_error"

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"Failed to parse the server response: {cause}")
        self.cause = cause


class NetworkError(UsageApiError):
    code = "network_error"

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"A network error occurred: {str(cause) or type(cause).__name__}")
        self.cause = cause

    @property
    def recovery_suggestion(self) -> str | None:
        return "Check your internet connection and try again."
