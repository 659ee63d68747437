from __future__ import annotations


class TubeDeskError(Exception):
    pass


class CredentialsError(TubeDeskError):
    kind = "credentials"


class CredentialsNotFoundError(CredentialsError):
    kind = "not_found"


class CredentialsMalformedError(CredentialsError):
    kind = "malformed"


class CredentialsMissingFieldsError(CredentialsError):
    kind = "missing_fields"


class AuthorizationError(TubeDeskError):
    pass


class AuthorizationDeniedError(AuthorizationError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"Authorization was denied: {reason}")
        self.reason = reason


class NoAuthorizationCodeError(AuthorizationError):
    def __init__(self) -> None:
        super().__init__("The authorization callback did not include an authorization code.")


class AuthorizationTimeoutError(AuthorizationError):
    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            f"Timed out after {timeout_seconds:g}s waiting for the authorization callback."
        )
        self.timeout_seconds = timeout_seconds


class NoPortAvailableError(TubeDeskError):
    def __init__(self, start_port: int, attempts: int) -> None:
        super().__init__(
            f"No available port found in range {start_port}-{start_port + attempts - 1}."
        )
        self.start_port = start_port
        self.attempts = attempts


class RemoteAPIError(TubeDeskError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StorageError(TubeDeskError):
    pass


def describe_remote_error(exc: Exception, *, max_length: int = 400) -> str:
    """Readable message for a failed YouTube call, verbatim where the API provides one."""
    reason_getter = getattr(exc, "_get_reason", None)
    raw = ""
    if callable(reason_getter):
        try:
            raw = str(reason_getter()).strip()
        except Exception:
            raw = ""
    if not raw:
        raw = str(exc).strip()
    if not raw:
        raw = "Unknown error occurred"
    if len(raw) <= max_length:
        return raw
    return f"{raw[: max_length - 3]}..."


def as_remote_error(exc: Exception) -> RemoteAPIError:
    if isinstance(exc, RemoteAPIError):
        return exc
    response = getattr(exc, "resp", None)
    status = getattr(response, "status", None)
    status_code = int(status) if isinstance(status, int | str) and str(status).isdigit() else None
    return RemoteAPIError(describe_remote_error(exc), status_code=status_code)
