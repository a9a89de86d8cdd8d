"""Fiscal invoice (NFS-e) issuance.

- **currency**: BRL valuation with processor, PTAX and fallback sources
- **tax_profile**: customer tax profile rules and CPF/CNPJ helpers
- **tomador**: customer payloads for domestic and foreign customers
- **issuer**: issuance, status polling and cancellation
- **webhook**: signed status notifications from the tax authority
"""

from src.domain.fiscal.currency import (
    ConversionResult,
    ConversionSource,
    CurrencyResolver,
)
from src.domain.fiscal.issuer import (
    CreditPurchase,
    InvoiceIssuer,
    SubscriptionPayment,
)
from src.domain.fiscal.models import InvoiceStatus, StatusUpdate, TransactionType
from src.domain.fiscal.webhook import WebhookReconciler

__all__ = [
    "ConversionResult",
    "ConversionSource",
    "CreditPurchase",
    "CurrencyResolver",
    "InvoiceIssuer",
    "InvoiceStatus",
    "StatusUpdate",
    "SubscriptionPayment",
    "TransactionType",
    "WebhookReconciler",
]
