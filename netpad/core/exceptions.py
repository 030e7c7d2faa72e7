"""Custom exceptions for NetPad Deploy."""

from typing import Any


class NetPadError(Exception):
    """Base exception for NetPad Deploy."""

    status_code: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(NetPadError):
    """Malformed or incomplete input to an orchestration step."""

    status_code = 400

    def __init__(self, message: str, errors: list[str] | None = None):
        details: dict[str, Any] = {}
        if errors:
            details["validation_errors"] = list(errors)
        super().__init__(message, details)

    @property
    def errors(self) -> list[str]:
        return self.details.get("validation_errors", [])


class ConflictError(NetPadError):
    """A remote resource name is already taken."""

    status_code = 409

    def __init__(self, message: str, suggestion: str | None = None):
        details = {}
        if suggestion:
            details["suggestion"] = suggestion
        super().__init__(message, details)


class NotFoundError(NetPadError):
    """Referenced deployment no longer exists."""

    status_code = 404

    def __init__(self, message: str, deployment_id: str | None = None):
        details = {}
        if deployment_id is not None:
            details["deployment_id"] = deployment_id
        super().__init__(message, details)


class UpstreamError(NetPadError):
    """The hosting provider or deployments API rejected an operation."""

    status_code = 502

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        if status_code is not None:
            self.status_code = status_code


class DeploymentFailedError(UpstreamError):
    """The remote host reported the deployment as failed."""

    def __init__(self, deployment_id: str, error: str):
        super().__init__(error, details={"deployment_id": deployment_id})
        self.deployment_id = deployment_id


class NetworkError(NetPadError):
    """Transport failure talking to the deployments API."""

    status_code = 503
