"""``POST /webhooks``: GitHub App deliveries."""

from __future__ import annotations

import typing as typ

import falcon

from gitwright.api.errors import envelope
from gitwright.webhooks.errors import EVENT_TYPE_HEADER, SIGNATURE_HEADER

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from gitwright.webhooks.service import WebhookIngestor

__all__ = ["WebhookResource"]

# Header names GitHub itself sends, accepted when the canonical ones are absent.
GITHUB_SIGNATURE_HEADER = "X-Hub-Signature-256"
GITHUB_EVENT_HEADER = "X-GitHub-Event"


class WebhookResource:
    """Hand the raw body and headers to the ingestor and acknowledge."""

    def __init__(self, ingestor: WebhookIngestor) -> None:
        """Bind the resource to the ingestor."""
        self._ingestor = ingestor

    async def on_post(self, req: Request, resp: Response) -> None:
        """Verify, store and dispatch one delivery."""
        raw_body = await req.stream.read()
        signature = req.get_header(SIGNATURE_HEADER) or req.get_header(
            GITHUB_SIGNATURE_HEADER
        )
        event_type = req.get_header(EVENT_TYPE_HEADER) or req.get_header(
            GITHUB_EVENT_HEADER
        )
        outcome = await self._ingestor.handle(raw_body, signature, event_type)
        resp.media = envelope({"accepted": True, "event_id": outcome.event_id})
        resp.status = falcon.HTTP_200
