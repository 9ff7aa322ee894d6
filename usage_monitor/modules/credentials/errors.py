from __future__ import annotations


class CredentialAccessError(Exception):
    code = "credential_error"
    recovery_suggestion: str | None = None

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class CredentialNotFoundError(CredentialAccessError):
    code = "credential_not_found"
    recovery_suggestion = "Configure a token in Settings."

    def __init__(self, message: str = "The token was not found.") -> None:
        super().__init__(message)


class CredentialMalformedError(CredentialAccessError):
    code = "credential_malformed"
    recovery_suggestion = "Try clearing and re-entering your token."

    def __init__(self, message: str = "The token data is invalid or corrupted.") -> None:
        super().__init__(message)


class CredentialDuplicateError(CredentialAccessError):
    code = "credential_exists"
    recovery_suggestion = "Clear the existing token before saving a new one."

    def __init__(self, message: str = "A token with this identifier already exists.") -> None:
        super().__init__(message)


class CredentialUnexpectedError(CredentialAccessError):
    code = "credential_unexpected"

    def __init__(self, status: int | str) -> None:
        super().__init__(f"Unexpected credential store status: {status}.")
        self.status = status
