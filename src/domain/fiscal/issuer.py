"""NFS-e issuance for captured payments.

Issuance is all-or-nothing: the tax profile is loaded and validated, the
payment is valued in BRL, the invoice is submitted to the tax API, and only
then is a row written. Any failure before the final write leaves no trace in
the database. Retries belong to the caller; the external reference is
deterministic per payment so a retried event never produces a second legal
invoice.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from loguru import logger

from src.core.config import FiscalConfig
from src.core.exceptions import TaxProfileMissingError
from src.core.observability import add_span_attributes, trace_operation
from src.domain.fiscal.currency import ConversionResult, CurrencyResolver, to_cents
from src.domain.fiscal.models import (
    CancelledInvoice,
    InvoiceSnapshot,
    InvoiceSubmission,
    NewInvoice,
    ServiceDetails,
    StatusUpdate,
    TaxDetails,
    TransactionType,
)
from src.domain.fiscal.protocols import InvoiceStore, TaxApiClient, TaxProfileStore
from src.domain.fiscal.tax_profile import validate_tax_profile
from src.domain.fiscal.tomador import build_tomador


@dataclass(frozen=True, slots=True)
class SubscriptionPayment:
    user_id: str
    user_email: str
    subscription_ref: str
    amount: Decimal
    currency: str
    plan_name: str
    processor_invoice_ref: str | None = None
    charge_ref: str | None = None
    payment_intent_ref: str | None = None


@dataclass(frozen=True, slots=True)
class CreditPurchase:
    user_id: str
    user_email: str
    payment_intent_ref: str
    amount: Decimal
    currency: str
    credit_amount: int
    charge_ref: str | None = None


def subscription_reference(user_id: str, subscription_ref: str) -> str:
    return f"user_{user_id}_sub_{subscription_ref}"


def credit_purchase_reference(user_id: str, payment_ref: str) -> str:
    return f"user_{user_id}_credits_{payment_ref}"


def build_service_description(product_name: str, conversion: ConversionResult) -> str:
    """Multi-line "discriminação" with the conversion provenance for audits."""
    rate = conversion.exchange_rate.quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)
    return "\n".join(
        [
            f"Serviço: {product_name}",
            f"Valor Original: {to_cents(conversion.original_amount)} "
            f"{conversion.original_currency}",
            f"Taxa de Câmbio: {rate}",
            f"Fonte: {conversion.source.label}",
            conversion.audit_text,
        ]
    )


class InvoiceIssuer:
    """Issue, inspect, synchronise and cancel NFS-e invoices."""

    def __init__(
        self,
        currency: CurrencyResolver,
        tax_api: TaxApiClient,
        profiles: TaxProfileStore,
        invoices: InvoiceStore,
        config: FiscalConfig,
    ) -> None:
        self._currency = currency
        self._tax_api = tax_api
        self._profiles = profiles
        self._invoices = invoices
        self._config = config

    async def issue_for_subscription_payment(self, payment: SubscriptionPayment) -> int:
        """Issue the invoice for a subscription charge and return its id."""
        return await self._issue(
            user_id=payment.user_id,
            email=payment.user_email,
            external_reference=subscription_reference(
                payment.user_id, payment.subscription_ref
            ),
            transaction_type=TransactionType.SUBSCRIPTION,
            product_name=payment.plan_name,
            amount=payment.amount,
            currency=payment.currency,
            charge_ref=payment.charge_ref,
            payment_intent_ref=payment.payment_intent_ref,
            subscription_ref=payment.subscription_ref,
            processor_invoice_ref=payment.processor_invoice_ref,
        )

    async def issue_for_credit_purchase(self, purchase: CreditPurchase) -> int:
        """Issue the invoice for a one-off credit purchase and return its id."""
        return await self._issue(
            user_id=purchase.user_id,
            email=purchase.user_email,
            external_reference=credit_purchase_reference(
                purchase.user_id, purchase.payment_intent_ref
            ),
            transaction_type=TransactionType.CREDIT_PURCHASE,
            product_name=f"{purchase.credit_amount} Credits",
            amount=purchase.amount,
            currency=purchase.currency,
            charge_ref=purchase.charge_ref,
            payment_intent_ref=purchase.payment_intent_ref,
        )

    async def _issue(
        self,
        *,
        user_id: str,
        email: str,
        external_reference: str,
        transaction_type: TransactionType,
        product_name: str,
        amount: Decimal,
        currency: str,
        charge_ref: str | None,
        payment_intent_ref: str | None,
        subscription_ref: str | None = None,
        processor_invoice_ref: str | None = None,
    ) -> int:
        with (
            logger.contextualize(external_reference=external_reference),
            trace_operation(
                "fiscal.invoice.issue", transaction_type=transaction_type.value
            ),
        ):
            profile = await self._profiles.get_profile(user_id)
            if profile is None:
                raise TaxProfileMissingError(user_id)
            validate_tax_profile(profile)

            existing_id = await self._invoices.find_id_by_external_reference(
                external_reference
            )
            if existing_id is not None:
                logger.info(
                    "Invoice already issued for this payment", invoice_id=existing_id
                )
                return existing_id

            conversion = await self._currency.convert(
                amount, currency, charge_ref, payment_intent_ref
            )
            description = build_service_description(product_name, conversion)
            config = self._config
            iss_rate = config.iss_rate
            iss_value = to_cents(conversion.amount_brl * iss_rate / 100)

            created = await self._tax_api.create_invoice(
                InvoiceSubmission(
                    tomador=build_tomador(profile, email),
                    service=ServiceDetails(
                        value_brl=conversion.amount_brl,
                        description=description,
                        item_lista_servico=config.item_lista_servico,
                        codigo_tributacao_municipio=config.codigo_tributacao_municipio,
                        codigo_cnae=config.codigo_cnae,
                    ),
                    taxes=TaxDetails(iss_rate=iss_rate, iss_value=iss_value),
                    external_reference=external_reference,
                )
            )
            add_span_attributes(reference=created.reference)

            invoice_id = await self._invoices.add(
                NewInvoice(
                    user_id=user_id,
                    tax_profile_id=profile.id,
                    reference=created.reference,
                    external_reference=external_reference,
                    transaction_type=transaction_type,
                    status=created.status,
                    product_name=product_name,
                    service_description=description,
                    value_brl=conversion.amount_brl,
                    original_amount=conversion.original_amount,
                    original_currency=conversion.original_currency,
                    exchange_rate=conversion.exchange_rate,
                    conversion_source=conversion.source.value,
                    rate_timestamp=conversion.rate_timestamp,
                    iss_rate=iss_rate,
                    iss_value=iss_value,
                    processor_fees_brl=conversion.processor_fees_brl,
                    processor_net_brl=conversion.processor_net_brl,
                    customer_name=profile.full_name,
                    customer_email=email,
                    customer_country=profile.country,
                    customer_document=profile.document,
                    nfse_number=created.nfse_number,
                    pdf_url=created.pdf_url,
                    xml_url=created.xml_url,
                    subscription_ref=subscription_ref,
                    processor_invoice_ref=processor_invoice_ref,
                    charge_ref=charge_ref,
                    payment_intent_ref=payment_intent_ref,
                )
            )

        logger.info(
            "Issued {} invoice {} with status {}",
            transaction_type.value,
            created.reference,
            created.status.value,
            invoice_id=invoice_id,
            value_brl=str(conversion.amount_brl),
        )
        return invoice_id

    async def get_status(self, reference: str) -> InvoiceSnapshot:
        """Current provider view of an invoice."""
        return await self._tax_api.get_invoice(reference)

    async def sync_status(self, reference: str) -> InvoiceSnapshot:
        """Poll the provider and store the result like a webhook would."""
        snapshot = await self._tax_api.get_invoice(reference)
        update = StatusUpdate.transition(
            snapshot.status,
            nfse_number=snapshot.nfse_number,
            pdf_url=snapshot.pdf_url,
            xml_url=snapshot.xml_url,
            error_message=snapshot.error_message,
        )
        applied = await self._invoices.apply_status_update(reference, update)
        logger.info(
            "Synchronised invoice {} to {}",
            reference,
            snapshot.status.value,
            applied=applied,
        )
        return snapshot

    async def cancel(
        self, reference: str, reason: str, code: str | None = None
    ) -> CancelledInvoice:
        """Ask the provider to cancel an invoice.

        A provider rejection (for example, the invoice is not authorized yet)
        propagates as ``FiscalApiError`` with the provider's message.
        """
        result = await self._tax_api.cancel_invoice(
            reference, code or self._config.default_cancellation_code, reason
        )
        await self._invoices.apply_status_update(
            reference,
            StatusUpdate.transition(result.status, cancellation_reason=reason),
        )
        logger.info("Cancelled invoice {}", reference, status=result.status.value)
        return result
