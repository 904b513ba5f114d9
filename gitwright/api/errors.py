"""API error types, the response envelope, and Falcon error handlers.

Every domain response has the shape ``{"success": bool, "data": ..., "error":
str}``, with ``error`` present only on failures. Handlers translate domain
exceptions into that envelope; internal details such as stack traces or
configuration values never reach the client.

Usage
-----
Register the handlers on the Falcon app::

    from gitwright.api.errors import register_error_handlers

    register_error_handlers(app)

"""

from __future__ import annotations

import typing as typ

import falcon

from gitwright.config import ConfigurationError
from gitwright.logging import get_logger, log_error, log_exception
from gitwright.operations.errors import (
    InvalidOperationError,
    OperationNotFoundError,
    RepositoryNotFoundError,
)
from gitwright.webhooks.errors import (
    InvalidWebhookPayloadError,
    MissingWebhookHeadersError,
    SignatureVerificationError,
)

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

__all__ = [
    "InstallationNotFoundError",
    "InvalidInputError",
    "envelope",
    "register_error_handlers",
]

logger = get_logger(__name__)


class InvalidInputError(Exception):
    """Raised for client validation errors that should map to HTTP 400.

    Attributes
    ----------
    reason
        Human-readable description of the validation failure.
    field
        Optional name of the input field that failed validation.

    """

    def __init__(self, reason: str, *, field: str | None = None) -> None:
        """Initialize with a validation reason and optional field name."""
        self.reason = reason
        self.field = field
        message = f"{field}: {reason}" if field is not None else reason
        super().__init__(message)


class InstallationNotFoundError(LookupError):
    """Raised when an installation id is not stored."""

    def __init__(self, installation_id: int) -> None:
        """Initialize with the missing installation id."""
        self.installation_id = installation_id
        super().__init__(f"No installation with id {installation_id} exists.")


def envelope(data: typ.Any = None, *, error: str | None = None) -> dict[str, typ.Any]:  # noqa: ANN401 - any JSON value
    """Wrap ``data`` or ``error`` in the response envelope."""
    body: dict[str, typ.Any] = {"success": error is None, "data": data}
    if error is not None:
        body["error"] = error
    return body


def _fail(resp: Response, status: str, message: str) -> None:
    resp.status = status
    resp.media = envelope(None, error=message)


async def handle_invalid_input(
    _req: Request,
    resp: Response,
    ex: InvalidInputError | InvalidOperationError,
    _params: dict[str, typ.Any],
) -> None:
    """Map validation errors to HTTP 400."""
    _fail(resp, falcon.HTTP_400, str(ex))


async def handle_invalid_webhook_payload(
    _req: Request,
    resp: Response,
    ex: InvalidWebhookPayloadError,
    _params: dict[str, typ.Any],
) -> None:
    """Map unreadable webhook bodies to HTTP 400."""
    _fail(resp, falcon.HTTP_400, str(ex))


async def handle_missing_webhook_headers(
    _req: Request,
    resp: Response,
    ex: MissingWebhookHeadersError,
    _params: dict[str, typ.Any],
) -> None:
    """Map missing webhook headers to HTTP 400."""
    _fail(resp, falcon.HTTP_400, str(ex))


async def handle_signature_verification(
    _req: Request,
    resp: Response,
    ex: SignatureVerificationError,
    _params: dict[str, typ.Any],
) -> None:
    """Map signature mismatches to HTTP 401."""
    _fail(resp, falcon.HTTP_401, str(ex))


async def handle_not_found(
    _req: Request,
    resp: Response,
    ex: RepositoryNotFoundError | OperationNotFoundError | InstallationNotFoundError,
    _params: dict[str, typ.Any],
) -> None:
    """Map unknown repositories, operations and installations to HTTP 404."""
    _fail(resp, falcon.HTTP_404, str(ex))


async def handle_configuration_error(
    req: Request,
    resp: Response,
    ex: ConfigurationError,
    _params: dict[str, typ.Any],
) -> None:
    """Map configuration errors to HTTP 500 without revealing the detail."""
    log_error(logger, "Configuration error serving %s %s: %s", req.method, req.path, ex)
    _fail(resp, falcon.HTTP_500, "Service is not configured")


async def handle_unexpected_error(
    req: Request,
    resp: Response,
    ex: Exception,
    _params: dict[str, typ.Any],
) -> None:
    """Map anything unhandled to HTTP 500 and log it with its traceback."""
    log_exception(logger, f"Unhandled error serving {req.method} {req.path}", ex)
    _fail(resp, falcon.HTTP_500, "Internal server error")


def register_error_handlers(app: falcon.asgi.App) -> None:
    """Install every handler above on ``app``."""
    app.add_error_handler(Exception, handle_unexpected_error)
    app.add_error_handler(ConfigurationError, handle_configuration_error)
    app.add_error_handler(InvalidInputError, handle_invalid_input)
    app.add_error_handler(InvalidOperationError, handle_invalid_input)
    app.add_error_handler(InvalidWebhookPayloadError, handle_invalid_webhook_payload)
    app.add_error_handler(MissingWebhookHeadersError, handle_missing_webhook_headers)
    app.add_error_handler(SignatureVerificationError, handle_signature_verification)
    app.add_error_handler(RepositoryNotFoundError, handle_not_found)
    app.add_error_handler(OperationNotFoundError, handle_not_found)
    app.add_error_handler(InstallationNotFoundError, handle_not_found)
