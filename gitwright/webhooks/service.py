"""Webhook Ingestor: verify, persist and act on GitHub deliveries.

Usage
-----
>>> ingestor = WebhookIngestor(store, provider, WebhookConfig(secret="s3cret"))
>>> outcome = await ingestor.handle(body, "sha256=...", "installation")
>>> outcome.processed
True

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import msgspec

from gitwright.github.errors import AuthError, GitHubAPIError
from gitwright.logging import get_logger, log_info, log_warning

from .config import WebhookConfig
from .errors import (
    InvalidWebhookPayloadError,
    MissingWebhookHeadersError,
    SignatureVerificationError,
)
from .events import (
    InstallationAction,
    InstallationEventPayload,
    WebhookEventKind,
    action_of,
    installation_id_of,
    repository_id_of,
)
from .signature import verify_signature

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from gitwright.storage.records import RepositoryRecord
    from gitwright.storage.store import OperationStore

    Payload = dict[str, typ.Any]
    EventHandler = cabc.Callable[[int, Payload], cabc.Awaitable[bool]]

logger = get_logger(__name__)


class RepositorySource(typ.Protocol):
    """The part of the credential provider the ingestor needs."""

    async def list_repositories(self, installation_id: int) -> list[RepositoryRecord]:
        """List every repository an installation can reach."""
        ...


@dc.dataclass(frozen=True, slots=True)
class WebhookOutcome:
    """What happened to one delivery."""

    event_id: int
    processed: bool


def _decode_payload(raw_body: bytes) -> Payload:
    try:
        payload = msgspec.json.decode(raw_body)
    except msgspec.DecodeError as exc:
        raise InvalidWebhookPayloadError("body is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise InvalidWebhookPayloadError("body must be a JSON object")
    return payload


class WebhookIngestor:
    """Accept GitHub App deliveries and keep installations in sync.

    Every verified delivery is stored before any handler runs. Handlers are
    looked up in closed tables keyed by :class:`WebhookEventKind` and
    :class:`InstallationAction`; deliveries nobody handles are stored and
    acknowledged without further work.
    """

    def __init__(
        self,
        store: OperationStore,
        repositories: RepositorySource,
        config: WebhookConfig | None = None,
    ) -> None:
        """Bind the store, repository source and secret settings."""
        self._store = store
        self._repositories = repositories
        self._config = config or WebhookConfig()
        self._event_handlers: dict[WebhookEventKind, EventHandler] = {
            WebhookEventKind.INSTALLATION: self._on_installation,
            WebhookEventKind.INSTALLATION_REPOSITORIES: self._on_installation_repositories,
            WebhookEventKind.OTHER: self._on_other,
        }
        self._installation_handlers: dict[InstallationAction, EventHandler] = {
            InstallationAction.CREATED: self._sync_installation,
            InstallationAction.NEW_PERMISSIONS_ACCEPTED: self._sync_installation,
            InstallationAction.DELETED: self._delete_installation,
            InstallationAction.SUSPEND: self._log_suspension,
            InstallationAction.UNSUSPEND: self._log_suspension,
        }

    def _verify(self, raw_body: bytes, signature_header: str) -> None:
        secret = self._config.secret
        if not secret:
            log_warning(
                logger, "Webhook secret not configured; skipping signature check"
            )
            return
        if not verify_signature(secret, raw_body, signature_header):
            raise SignatureVerificationError

    async def handle(
        self,
        raw_body: bytes,
        signature_header: str | None,
        event_type_header: str | None,
    ) -> WebhookOutcome:
        """Verify, persist and dispatch one delivery.

        Parameters
        ----------
        raw_body
            Request body exactly as received; the signature covers these bytes.
        signature_header
            ``sha256=<hex>`` HMAC of the body.
        event_type_header
            GitHub event name such as ``installation``.

        Returns
        -------
        WebhookOutcome
            Stored event id and whether a handler completed.

        Raises
        ------
        MissingWebhookHeadersError
            If the event type or signature header is absent, whether or not
            a secret is configured.
        SignatureVerificationError
            If the signature does not match.
        InvalidWebhookPayloadError
            If the body is not a JSON object.

        """
        if not event_type_header:
            raise MissingWebhookHeadersError.event_type()
        if not signature_header:
            raise MissingWebhookHeadersError.signature()
        self._verify(raw_body, signature_header)
        payload = _decode_payload(raw_body)

        event_id = await self._store.record_webhook_event(
            event_type=event_type_header,
            action=action_of(payload),
            payload=payload,
            installation_id=installation_id_of(payload),
            repository_id=repository_id_of(payload),
        )

        handler = self._event_handlers[WebhookEventKind.parse(event_type_header)]
        try:
            processed = await handler(event_id, payload)
        except (AuthError, GitHubAPIError) as exc:
            log_warning(
                logger,
                "Webhook event %d (%s) left unprocessed: %s",
                event_id,
                event_type_header,
                exc,
            )
            processed = False

        if processed:
            await self._store.mark_webhook_processed(event_id)
        return WebhookOutcome(event_id=event_id, processed=processed)

    async def _on_installation(self, event_id: int, payload: Payload) -> bool:
        action = InstallationAction.parse(action_of(payload))
        if action is None:
            log_info(
                logger,
                "Ignoring installation action %r (event %d)",
                action_of(payload),
                event_id,
            )
            return False
        return await self._installation_handlers[action](event_id, payload)

    async def _on_installation_repositories(
        self, event_id: int, payload: Payload
    ) -> bool:
        return await self._sync_installation(event_id, payload)

    async def _on_other(self, event_id: int, payload: Payload) -> bool:
        del payload
        log_info(logger, "Stored webhook event %d without a handler", event_id)
        return False

    async def _sync_installation(self, event_id: int, payload: Payload) -> bool:
        event = _installation_event(event_id, payload)
        if event is None:
            return False
        installation = event.installation
        repositories = await self._repositories.list_repositories(installation.id)
        result = await self._store.upsert_installation(
            installation.to_record(), repositories
        )
        log_info(
            logger,
            "Synchronised installation %d (%s): created=%s repositories "
            "created=%d updated=%d removed=%d",
            installation.id,
            installation.account.login,
            result.created,
            result.repositories_created,
            result.repositories_updated,
            result.repositories_removed,
        )
        return True

    async def _delete_installation(self, event_id: int, payload: Payload) -> bool:
        installation_id = installation_id_of(payload)
        if installation_id is None:
            log_warning(logger, "Event %d has no installation id", event_id)
            return False
        deleted = await self._store.delete_installation(
            installation_id, keep_event_id=event_id
        )
        log_info(
            logger,
            "Installation %d removed (known=%s)",
            installation_id,
            deleted,
        )
        return True

    async def _log_suspension(self, event_id: int, payload: Payload) -> bool:
        log_info(
            logger,
            "Installation %s %s (event %d)",
            installation_id_of(payload),
            action_of(payload),
            event_id,
        )
        return True


def _installation_event(
    event_id: int, payload: Payload
) -> InstallationEventPayload | None:
    try:
        return msgspec.convert(payload, type=InstallationEventPayload)
    except msgspec.ValidationError as exc:
        log_warning(
            logger, "Event %d has an unreadable installation: %s", event_id, exc
        )
        return None


__all__ = ["RepositorySource", "WebhookIngestor", "WebhookOutcome"]
