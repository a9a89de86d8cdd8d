"""Client for the Fiscal Nacional NFS-e REST API.

The API speaks snake_case Portuguese JSON. Requests carry the issuing
company ("prestador") from ``FiscalConfig``; responses are mapped onto the
domain's invoice models. Any non-2xx answer raises ``FiscalApiError`` with
the provider's own message.
"""

from collections.abc import Mapping
from typing import Any, Final

import httpx
import pydantic
from loguru import logger

from src.core.config import FiscalConfig
from src.core.exceptions import FiscalApiError
from src.core.observability import trace_operation
from src.core.types import JsonObject
from src.domain.fiscal.models import (
    CancelledInvoice,
    CreatedInvoice,
    InvoiceSnapshot,
    InvoiceSubmission,
)
from src.domain.fiscal.tomador import DomesticTomador, ForeignTomador

# Provider field name -> domain field name
_RESPONSE_FIELDS: Final[dict[str, str]] = {
    "referencia": "reference",
    "status": "status",
    "numero_nfse": "nfse_number",
    "codigo_verificacao": "verification_code",
    "url_pdf": "pdf_url",
    "url_xml": "xml_url",
    "data_autorizacao": "issued_at",
    "data_cancelamento": "cancelled_at",
    "mensagem_erro": "error_message",
}


def _compact(data: JsonObject) -> JsonObject:
    return {key: value for key, value in data.items() if value is not None}


def _tomador_payload(tomador: DomesticTomador | ForeignTomador) -> JsonObject:
    if isinstance(tomador, DomesticTomador):
        address = tomador.address
        return {
            "cpf_cnpj": tomador.document,
            "nome_razao_social": tomador.name,
            "email": tomador.email,
            "endereco": _compact(
                {
                    "logradouro": address.street,
                    "numero": address.number,
                    "complemento": address.complement,
                    "bairro": address.neighborhood,
                    "codigo_municipio": address.city_code,
                    "uf": address.state,
                    "cep": address.postal_code,
                }
            ),
        }
    return _compact(
        {
            "nome_razao_social": tomador.name,
            "email": tomador.email,
            "pais": tomador.country,
            "nif": tomador.nif,
            "endereco_exterior": tomador.foreign_address,
        }
    )


def build_create_payload(
    submission: InvoiceSubmission, config: FiscalConfig
) -> JsonObject:
    """Request body for ``POST /nfse``."""
    service = submission.service
    taxes = submission.taxes
    return _compact(
        {
            "prestador": {
                "cnpj": config.company_cnpj,
                "inscricao_municipal": config.inscricao_municipal,
                "codigo_municipio": config.codigo_municipio,
            },
            "tomador": _tomador_payload(submission.tomador),
            "servico": {
                "valor_servicos": float(service.value_brl),
                "item_lista_servico": service.item_lista_servico,
                "codigo_tributacao_municipio": service.codigo_tributacao_municipio,
                "discriminacao": service.description,
                "codigo_cnae": service.codigo_cnae,
            },
            "impostos": {
                "iss_retido": taxes.iss_retained,
                "valor_iss": float(taxes.iss_value),
                "aliquota_iss": float(taxes.iss_rate),
            },
            "observacoes": submission.notes,
            "referencia_externa": submission.external_reference,
        }
    )


def _translate(data: Mapping[str, Any]) -> JsonObject:
    return {
        domain: data[provider]
        for provider, domain in _RESPONSE_FIELDS.items()
        if data.get(provider) is not None
    }


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase


class FiscalNacionalClient:
    """``TaxApiClient`` over an authenticated ``httpx.AsyncClient``."""

    def __init__(self, client: httpx.AsyncClient, config: FiscalConfig) -> None:
        self._client = client
        self._config = config

    async def create_invoice(self, submission: InvoiceSubmission) -> CreatedInvoice:
        payload = build_create_payload(submission, self._config)
        data = await self._request("POST", "/nfse", "create NFS-e", json=payload)
        return self._parse(CreatedInvoice, data)

    async def get_invoice(self, reference: str) -> InvoiceSnapshot:
        data = await self._request("GET", f"/nfse/{reference}", "get NFS-e status")
        return self._parse(InvoiceSnapshot, data)

    async def cancel_invoice(
        self, reference: str, code: str, reason: str
    ) -> CancelledInvoice:
        data = await self._request(
            "POST",
            f"/nfse/{reference}/cancel",
            "cancel NFS-e",
            json={"codigo_cancelamento": code, "motivo": reason},
        )
        return self._parse(CancelledInvoice, data)

    async def _request(
        self,
        method: str,
        path: str,
        action: str,
        json: JsonObject | None = None,
    ) -> JsonObject:
        with trace_operation("fiscal_api.request", method=method, path=path) as span:
            try:
                response = await self._client.request(method, path, json=json)
            except httpx.HTTPError as e:
                logger.warning("Tax API {} failed: {}", action, type(e).__name__)
                msg = f"Failed to {action}: tax API unreachable"
                raise FiscalApiError(msg, cause=e) from e
            span.set_attribute("http.status_code", response.status_code)

        if response.is_error:
            message = _error_message(response)
            logger.warning(
                "Tax API rejected {}",
                action,
                upstream_status=response.status_code,
                provider_message=message,
            )
            raise FiscalApiError(
                f"Failed to {action}: {message}", status_code=response.status_code
            )

        try:
            body = response.json()
        except ValueError as e:
            msg = f"Failed to {action}: response is not JSON"
            raise FiscalApiError(msg, status_code=response.status_code, cause=e) from e
        if not isinstance(body, dict):
            msg = f"Failed to {action}: unexpected response shape"
            raise FiscalApiError(msg, status_code=response.status_code)
        return body

    @staticmethod
    def _parse[M: pydantic.BaseModel](model: type[M], data: JsonObject) -> M:
        try:
            return model.model_validate(_translate(data))
        except pydantic.ValidationError as e:
            msg = f"Unexpected tax API response: {e.error_count()} invalid fields"
            raise FiscalApiError(msg, cause=e) from e
