"""Authenticating GitHub webhook requests and extracting bot events from them."""

from __future__ import annotations

import hashlib
import hmac
import logging
import string
from collections.abc import Mapping
from http import HTTPStatus

from mergebot.events import Event
from mergebot.webhook_parse import WebhookError, parse_webhook_event

logger = logging.getLogger(__name__)

REQUEST_BODY_LIMIT = 10 * 1024 * 1024

_SIGNATURE_PREFIX_LEN = len("sha256=")


class WebhookSecret:
    """A webhook secret that is only revealed through :meth:`expose`."""

    __slots__ = ("_value",)

    def __init__(self, secret: str) -> None:
        self._value = secret

    def expose(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return "WebhookSecret(***)"


class WebhookRejected(Exception):
    """A webhook request that does not produce an event.

    ``status_code`` is the HTTP status the request should be answered with:
    400 for invalid requests, 200 for valid requests that are ignored.
    """

    def __init__(self, status_code: HTTPStatus, reason: str) -> None:
        super().__init__(reason)
        self.status_code = status_code
        self.reason = reason


def _header(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    return next((v for k, v in headers.items() if k.lower() == lowered), None)


def _as_bytes(body: bytes | bytearray | str) -> bytes:
    return body.encode("utf-8") if isinstance(body, str) else bytes(body)


def _decode_hex(text: str) -> bytes | None:
    if len(text) % 2 or any(c not in string.hexdigits for c in text):
        return None
    return bytes.fromhex(text)


def verify_gh_signature(
    headers: Mapping[str, str], body: bytes | str, secret: WebhookSecret
) -> bool:
    """Check that ``body`` is signed with HMAC-SHA256 under ``secret``."""
    header = _header(headers, "x-hub-signature-256")
    if header is None or len(header) < _SIGNATURE_PREFIX_LEN:
        return False
    signature = _decode_hex(header[_SIGNATURE_PREFIX_LEN:])
    if signature is None:
        return False
    digest = hmac.new(
        secret.expose().encode("utf-8"), _as_bytes(body), hashlib.sha256
    ).digest()
    return hmac.compare_digest(digest, signature)


def extract_webhook_event(
    headers: Mapping[str, str], body: bytes | str, secret: WebhookSecret
) -> Event:
    """Authenticate a webhook request and return the event it carries.

    Raises ``WebhookRejected`` when the request is invalid or carries nothing
    the bot reacts to.
    """
    data = _as_bytes(body)
    if len(data) > REQUEST_BODY_LIMIT:
        logger.error("Parsing webhook body failed: body exceeds %d bytes", REQUEST_BODY_LIMIT)
        raise WebhookRejected(HTTPStatus.BAD_REQUEST, "Request body is too large")

    if not verify_gh_signature(headers, data, secret):
        logger.error("Webhook request failed, could not authenticate webhook")
        raise WebhookRejected(HTTPStatus.BAD_REQUEST, "Invalid webhook signature")

    event_type = _header(headers, "x-github-event")
    if event_type is None:
        logger.error("Cannot parse webhook event: x-github-event header not found")
        raise WebhookRejected(HTTPStatus.BAD_REQUEST, "x-github-event header not found")

    try:
        event = parse_webhook_event(event_type, data)
    except WebhookError as error:
        logger.error("Cannot parse webhook event: %s", error)
        raise WebhookRejected(HTTPStatus.BAD_REQUEST, str(error)) from error

    if event is None:
        raise WebhookRejected(HTTPStatus.OK, f"Ignored `{event_type}` event")
    logger.debug("Received webhook event %r", event)
    return event