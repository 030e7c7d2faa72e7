"""Core functionality for NetPad Deploy."""

from netpad.core.exceptions import (
    ConflictError,
    DeploymentFailedError,
    NetPadError,
    NetworkError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)

__all__ = [
    "NetPadError",
    "ValidationError",
    "ConflictError",
    "NotFoundError",
    "UpstreamError",
    "DeploymentFailedError",
    "NetworkError",
]
