"""Outbound HTTP clients: payment processor, central bank PTAX, IBGE and tax API."""

from src.infrastructure.clients.fiscal_nacional import FiscalNacionalClient
from src.infrastructure.clients.http import close_http_clients, get_http_client
from src.infrastructure.clients.ibge import IbgeClient
from src.infrastructure.clients.ptax import PtaxClient
from src.infrastructure.clients.stripe import StripeSettlementClient

__all__ = [
    "FiscalNacionalClient",
    "IbgeClient",
    "PtaxClient",
    "StripeSettlementClient",
    "close_http_clients",
    "get_http_client",
]
