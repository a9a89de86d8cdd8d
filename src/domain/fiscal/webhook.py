"""Authentication and application of tax authority status notifications.

The tax authority signs every notification with a hex HMAC-SHA256 of the raw
body under a shared secret. A notification is verified before it is parsed;
an unverifiable one changes nothing. A verified notification becomes exactly
one ``UPDATE`` on the invoice with the matching provider reference. Unknown
references are ignored, and repeated notifications simply re-apply.
"""

import hashlib
import hmac
from typing import Annotated, Literal

import pydantic
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from src.core.exceptions import ValidationError, WebhookSignatureError
from src.core.observability import trace_operation
from src.domain.fiscal.models import InvoiceStatus, StatusUpdate
from src.domain.fiscal.protocols import InvoiceStore


class _Notification(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    event: str
    reference: str = Field(min_length=1)
    timestamp: str


class PendingNotification(_Notification):
    status: Literal["pending"]


class ProcessingNotification(_Notification):
    status: Literal["processing"]


class AuthorizedNotification(_Notification):
    status: Literal["authorized"]
    nfse_number: str | None = None
    pdf_url: str | None = None
    xml_url: str | None = None


class ErrorNotification(_Notification):
    status: Literal["error"]
    error_message: str | None = None


class CancelledNotification(_Notification):
    status: Literal["cancelled"]


type FiscalNotification = Annotated[
    PendingNotification
    | ProcessingNotification
    | AuthorizedNotification
    | ErrorNotification
    | CancelledNotification,
    Field(discriminator="status"),
]

_notification_adapter: TypeAdapter[FiscalNotification] = TypeAdapter(
    FiscalNotification
)


def compute_signature(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: str | None, secret: str | None) -> None:
    """Raise ``WebhookSignatureError`` unless ``signature`` signs ``body``."""
    if not signature:
        raise WebhookSignatureError("signature header missing")
    if not secret:
        raise WebhookSignatureError("webhook secret not configured")

    expected = compute_signature(body, secret)
    if not hmac.compare_digest(expected.encode(), signature.encode()):
        raise WebhookSignatureError("signature mismatch")


def parse_notification(body: bytes) -> FiscalNotification:
    """Decode a notification; unknown statuses and malformed bodies are rejected."""
    try:
        return _notification_adapter.validate_json(body)
    except pydantic.ValidationError as e:
        raise ValidationError(
            "Malformed fiscal notification",
            context={"errors": e.errors(include_url=False, include_input=False)},
            cause=e,
        ) from e


def to_status_update(notification: FiscalNotification) -> StatusUpdate:
    match notification:
        case AuthorizedNotification():
            return StatusUpdate.transition(
                InvoiceStatus.AUTHORIZED,
                nfse_number=notification.nfse_number,
                pdf_url=notification.pdf_url,
                xml_url=notification.xml_url,
            )
        case ErrorNotification():
            return StatusUpdate.transition(
                InvoiceStatus.ERROR, error_message=notification.error_message
            )
        case _:
            return StatusUpdate.transition(InvoiceStatus(notification.status))


class WebhookReconciler:
    """Apply signed notifications to stored invoices."""

    def __init__(self, invoices: InvoiceStore, secret: str | None) -> None:
        self._invoices = invoices
        self._secret = secret

    async def handle(self, body: bytes, signature: str | None) -> bool:
        """Verify, decode and apply one notification.

        Returns:
            bool: Whether an invoice with the notified reference was updated.

        Raises:
            WebhookSignatureError: The signature is missing or wrong, or no
                secret is configured. Nothing is written.
            ValidationError: The verified body is not a known notification.
        """
        try:
            verify_signature(body, signature, self._secret)
        except WebhookSignatureError as e:
            logger.warning("Rejected fiscal webhook: {}", e.reason)
            raise

        notification = parse_notification(body)
        update = to_status_update(notification)

        with (
            logger.contextualize(reference=notification.reference),
            trace_operation(
                "fiscal.webhook.apply",
                reference=notification.reference,
                status=notification.status,
            ),
        ):
            applied = await self._invoices.apply_status_update(
                notification.reference, update
            )
            if applied:
                logger.info(
                    "Applied fiscal notification {}",
                    notification.status,
                    notification_event=notification.event,
                )
            else:
                logger.info("Ignored notification for unknown invoice")
        return applied
