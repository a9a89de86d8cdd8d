"""Unit tests for building the customer payload from a tax profile."""

import pytest
import pytest_check
from pydantic import TypeAdapter

from src.domain.fiscal.tomador import (
    DomesticTomador,
    ForeignTomador,
    Tomador,
    build_tomador,
)
from tests.fakes import VALID_CNPJ, VALID_CPF, domestic_profile, foreign_profile


@pytest.mark.unit
class TestDomesticTomador:
    def test_maps_document_and_address(self) -> None:
        tomador = build_tomador(
            domestic_profile(cpf_cnpj="529.982.247-25", state="sp"),
            "maria@example.com",
        )

        assert isinstance(tomador, DomesticTomador)
        with pytest_check.check:
            assert tomador.kind == "domestic"
        with pytest_check.check:
            assert tomador.document == VALID_CPF
        with pytest_check.check:
            assert tomador.name == "Maria Silva"
        with pytest_check.check:
            assert tomador.email == "maria@example.com"
        with pytest_check.check:
            assert tomador.address.street == "Avenida Paulista"
        with pytest_check.check:
            assert tomador.address.state == "SP"
        with pytest_check.check:
            assert tomador.address.postal_code == "01310100"
        with pytest_check.check:
            assert tomador.address.city_code == "3550308"
        with pytest_check.check:
            assert tomador.address.complement == "Conjunto 12"

    def test_blank_complement_is_dropped(self) -> None:
        tomador = build_tomador(domestic_profile(complement=""), "m@example.com")
        assert isinstance(tomador, DomesticTomador)
        assert tomador.address.complement is None

    @pytest.mark.parametrize(
        ("document", "expected_name"),
        [
            (VALID_CPF, f"CPF {VALID_CPF}"),
            (VALID_CNPJ, f"CNPJ {VALID_CNPJ}"),
        ],
    )
    def test_name_falls_back_to_document(
        self, document: str, expected_name: str
    ) -> None:
        tomador = build_tomador(
            domestic_profile(cpf_cnpj=document, full_name=None), "m@example.com"
        )
        assert tomador.name == expected_name


@pytest.mark.unit
class TestForeignTomador:
    def test_maps_name_country_and_nif(self) -> None:
        tomador = build_tomador(foreign_profile(), "john@example.com")

        assert isinstance(tomador, ForeignTomador)
        assert tomador.kind == "foreign"
        assert tomador.country == "US"
        assert tomador.nif == "123-45-6789"
        assert tomador.foreign_address == "1 Market St, San Francisco, 94105"

    def test_optional_fields_are_omitted(self) -> None:
        profile = foreign_profile(nif="", address=None, city=None, postal_code=None)

        tomador = build_tomador(profile, "john@example.com")

        assert isinstance(tomador, ForeignTomador)
        assert tomador.nif is None
        assert tomador.foreign_address is None

    def test_foreign_resident_with_brazilian_country_is_foreign(self) -> None:
        tomador = build_tomador(foreign_profile(country="BR"), "john@example.com")
        assert isinstance(tomador, ForeignTomador)


@pytest.mark.unit
def test_tomador_union_is_discriminated_by_kind() -> None:
    adapter = TypeAdapter(Tomador)
    tomador = build_tomador(foreign_profile(), "john@example.com")

    parsed = adapter.validate_python(tomador.model_dump())

    assert isinstance(parsed, ForeignTomador)
    assert parsed == tomador
