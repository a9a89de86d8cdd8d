"""Unit tests for the Fiscal Nacional NFS-e client."""

from collections.abc import Callable
from decimal import Decimal
from typing import Any

import httpx
import orjson
import pytest
import pytest_check

from src.core.config import FiscalConfig
from src.core.exceptions import FiscalApiError
from src.domain.fiscal.models import (
    InvoiceStatus,
    InvoiceSubmission,
    ServiceDetails,
    TaxDetails,
)
from src.domain.fiscal.tomador import build_tomador
from src.infrastructure.clients.fiscal_nacional import (
    FiscalNacionalClient,
    build_create_payload,
)
from tests.fakes import VALID_CPF, domestic_profile, foreign_profile

BASE_URL = "https://sandbox.fiscalnacional.com.br/v1"

CONFIG = FiscalConfig(
    company_cnpj="11222333000181",
    inscricao_municipal="1234567",
    codigo_municipio="3550308",
    codigo_cnae="6201501",
    codigo_tributacao_municipio="010701",
)


def submission(
    profile_factory: Callable[..., Any] = domestic_profile,
) -> InvoiceSubmission:
    return InvoiceSubmission(
        tomador=build_tomador(profile_factory(complement=None), "c@example.com"),
        service=ServiceDetails(
            value_brl=Decimal("297.00"),
            description="Serviço: Pro",
            item_lista_servico="01.07",
            codigo_tributacao_municipio="010701",
            codigo_cnae="6201501",
        ),
        taxes=TaxDetails(iss_rate=Decimal("2.00"), iss_value=Decimal("5.94")),
        external_reference="user_u1_sub_sub_1",
    )


def fiscal_client(
    handler: Callable[[httpx.Request], httpx.Response],
) -> FiscalNacionalClient:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url=BASE_URL
    )
    return FiscalNacionalClient(client, CONFIG)


def respond(status_code: int, body: Any) -> Callable[[httpx.Request], httpx.Response]:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=body)

    return handler


@pytest.mark.unit
class TestBuildCreatePayload:
    def test_domestic_payload(self) -> None:
        payload = build_create_payload(submission(), CONFIG)

        with pytest_check.check:
            assert payload["prestador"] == {
                "cnpj": "11222333000181",
                "inscricao_municipal": "1234567",
                "codigo_municipio": "3550308",
            }
        with pytest_check.check:
            assert payload["tomador"]["cpf_cnpj"] == VALID_CPF
        with pytest_check.check:
            assert payload["tomador"]["endereco"] == {
                "logradouro": "Avenida Paulista",
                "numero": "1000",
                "bairro": "Bela Vista",
                "codigo_municipio": "3550308",
                "uf": "SP",
                "cep": "01310100",
            }
        with pytest_check.check:
            assert payload["servico"]["valor_servicos"] == 297.0
        with pytest_check.check:
            assert payload["impostos"] == {
                "iss_retido": False,
                "valor_iss": 5.94,
                "aliquota_iss": 2.0,
            }
        with pytest_check.check:
            assert payload["referencia_externa"] == "user_u1_sub_sub_1"
        with pytest_check.check:
            assert "observacoes" not in payload

    def test_foreign_payload(self) -> None:
        payload = build_create_payload(submission(foreign_profile), CONFIG)

        assert payload["tomador"] == {
            "nome_razao_social": "John Doe",
            "email": "c@example.com",
            "pais": "US",
            "nif": "123-45-6789",
            "endereco_exterior": "1 Market St, San Francisco, 94105",
        }


@pytest.mark.unit
class TestFiscalNacionalClient:
    async def test_create_invoice_posts_payload(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                201, json={"referencia": "R1", "status": "pending", "ignored": 1}
            )

        created = await fiscal_client(handler).create_invoice(submission())

        assert created.reference == "R1"
        assert created.status is InvoiceStatus.PENDING
        assert seen[0].method == "POST"
        assert seen[0].url.path == "/v1/nfse"
        body = orjson.loads(seen[0].content)
        assert body["referencia_externa"] == "user_u1_sub_sub_1"

    async def test_get_invoice_maps_provider_fields(self) -> None:
        handler = respond(
            200,
            {
                "referencia": "R1",
                "status": "authorized",
                "numero_nfse": "2025/1",
                "codigo_verificacao": "ABC123",
                "url_pdf": "https://nfse.example/1.pdf",
                "url_xml": "https://nfse.example/1.xml",
                "data_autorizacao": "2025-06-04T13:00:00-03:00",
            },
        )

        snapshot = await fiscal_client(handler).get_invoice("R1")

        assert snapshot.status is InvoiceStatus.AUTHORIZED
        assert snapshot.nfse_number == "2025/1"
        assert snapshot.verification_code == "ABC123"
        assert snapshot.xml_url == "https://nfse.example/1.xml"
        assert snapshot.issued_at is not None
        assert snapshot.issued_at.hour == 13

    async def test_cancel_invoice_sends_code_and_reason(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "referencia": "R1",
                    "status": "cancelled",
                    "data_cancelamento": "2025-06-05T09:00:00-03:00",
                },
            )

        result = await fiscal_client(handler).cancel_invoice(
            "R1", "1", "Customer requested a refund"
        )

        assert result.status is InvoiceStatus.CANCELLED
        assert result.cancelled_at is not None
        assert seen[0].url.path == "/v1/nfse/R1/cancel"
        assert orjson.loads(seen[0].content) == {
            "codigo_cancelamento": "1",
            "motivo": "Customer requested a refund",
        }

    async def test_provider_message_is_surfaced(self) -> None:
        handler = respond(422, {"message": "CPF do tomador inválido"})

        with pytest.raises(FiscalApiError) as exc_info:
            await fiscal_client(handler).create_invoice(submission())

        error = exc_info.value
        assert error.message == "Failed to create NFS-e: CPF do tomador inválido"
        assert error.status_code == 422
        assert error.service == "fiscal_api"

    async def test_non_json_error_uses_reason_phrase(self) -> None:
        def handler(_request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="<html>oops</html>")

        with pytest.raises(FiscalApiError, match="Internal Server Error"):
            await fiscal_client(handler).get_invoice("R1")

    async def test_transport_failure_is_wrapped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            msg = "connection refused"
            raise httpx.ConnectError(msg, request=request)

        with pytest.raises(FiscalApiError, match="tax API unreachable") as exc_info:
            await fiscal_client(handler).get_invoice("R1")

        assert isinstance(exc_info.value.cause, httpx.ConnectError)
        assert exc_info.value.status_code is None

    @pytest.mark.parametrize(
        ("body", "match"),
        [
            ({"referencia": "R1", "status": "refunded"}, "Unexpected tax API"),
            ({"status": "pending"}, "Unexpected tax API"),
            ([{"referencia": "R1"}], "unexpected response shape"),
        ],
    )
    async def test_unexpected_responses_raise(self, body: Any, match: str) -> None:
        with pytest.raises(FiscalApiError, match=match):
            await fiscal_client(respond(200, body)).get_invoice("R1")
