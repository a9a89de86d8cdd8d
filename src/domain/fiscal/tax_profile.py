"""Tax profile read model, its jurisdiction rules and Brazilian document helpers.

``validate_tax_profile`` is the single gate for profile completeness. It runs
when a profile is saved and again right before an invoice is issued; the
tomador builder relies on it and does not check fields itself.
"""

import re
from dataclasses import dataclass
from typing import Final, Literal

from pydantic import BaseModel, ConfigDict

from src.core.exceptions import TaxProfileInvalidError

BRAZILIAN_STATES: Final[dict[str, str]] = {
    "AC": "Acre",
    "AL": "Alagoas",
    "AP": "Amapá",
    "AM": "Amazonas",
    "BA": "Bahia",
    "CE": "Ceará",
    "DF": "Distrito Federal",
    "ES": "Espírito Santo",
    "GO": "Goiás",
    "MA": "Maranhão",
    "MT": "Mato Grosso",
    "MS": "Mato Grosso do Sul",
    "MG": "Minas Gerais",
    "PA": "Pará",
    "PB": "Paraíba",
    "PR": "Paraná",
    "PE": "Pernambuco",
    "PI": "Piauí",
    "RJ": "Rio de Janeiro",
    "RN": "Rio Grande do Norte",
    "RS": "Rio Grande do Sul",
    "RO": "Rondônia",
    "RR": "Roraima",
    "SC": "Santa Catarina",
    "SP": "São Paulo",
    "SE": "Sergipe",
    "TO": "Tocantins",
}

CPF_LENGTH: Final[int] = 11
CNPJ_LENGTH: Final[int] = 14
CEP_LENGTH: Final[int] = 8

_NON_DIGITS = re.compile(r"\D")

# Required for a domestic invoice, in the order they are reported
DOMESTIC_ADDRESS_FIELDS: Final[tuple[str, ...]] = (
    "address",
    "number",
    "neighborhood",
    "city_code",
    "state",
    "postal_code",
)

type DocumentType = Literal["cpf", "cnpj"]


class TaxProfile(BaseModel):
    """Read model of a user's persisted tax profile."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int | None = None
    user_id: str
    country: str
    is_brazilian: bool
    cpf_cnpj: str | None = None
    nif: str | None = None
    nif_exemption_code: str | None = None
    full_name: str | None = None
    address: str | None = None
    number: str | None = None
    complement: str | None = None
    neighborhood: str | None = None
    city: str | None = None
    city_code: str | None = None
    state: str | None = None
    postal_code: str | None = None
    inscricao_municipal: str | None = None

    @property
    def document(self) -> str | None:
        """CPF/CNPJ for domestic customers, NIF otherwise."""
        return self.cpf_cnpj or self.nif


@dataclass(frozen=True, slots=True)
class Municipality:
    """IBGE municipality; ``id`` is the seven-digit code stored as ``city_code``."""

    id: str
    name: str


@dataclass(frozen=True, slots=True)
class DocumentCheck:
    valid: bool
    type: DocumentType | None = None
    formatted: str | None = None
    message: str | None = None


def only_digits(value: str) -> str:
    return _NON_DIGITS.sub("", value)


def _check_digit(digits: str, weights: list[int]) -> int:
    remainder = sum(int(d) * w for d, w in zip(digits, weights, strict=True)) % 11
    return 0 if remainder < 2 else 11 - remainder  # noqa: PLR2004


def _has_valid_check_digits(document: str) -> bool:
    if len(document) == CPF_LENGTH:
        first = _check_digit(document[:9], list(range(10, 1, -1)))
        second = _check_digit(document[:10], list(range(11, 1, -1)))
    else:
        weights = [5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2]
        first = _check_digit(document[:12], weights)
        second = _check_digit(document[:13], [6, *weights])
    return document[-2:] == f"{first}{second}"


def format_document(document: str) -> str:
    """Format 11 digits as a CPF and 14 digits as a CNPJ."""
    d = only_digits(document)
    if len(d) == CPF_LENGTH:
        return f"{d[:3]}.{d[3:6]}.{d[6:9]}-{d[9:]}"
    return f"{d[:2]}.{d[2:5]}.{d[5:8]}/{d[8:12]}-{d[12:]}"


def is_plausible_document(document: str) -> bool:
    """Length and repeated-digit check used when saving a profile."""
    digits = only_digits(document)
    return len(digits) in (CPF_LENGTH, CNPJ_LENGTH) and len(set(digits)) > 1


def check_document(document: str) -> DocumentCheck:
    """Full CPF/CNPJ check: length, repeated digits and both check digits."""
    digits = only_digits(document)
    if len(digits) not in (CPF_LENGTH, CNPJ_LENGTH):
        return DocumentCheck(
            valid=False,
            message="Document must be 11 digits (CPF) or 14 digits (CNPJ)",
        )

    doc_type: DocumentType = "cpf" if len(digits) == CPF_LENGTH else "cnpj"
    if len(set(digits)) == 1 or not _has_valid_check_digits(digits):
        return DocumentCheck(valid=False, type=doc_type, message="Invalid document")
    return DocumentCheck(valid=True, type=doc_type, formatted=format_document(digits))


def validate_tax_profile(profile: TaxProfile) -> None:
    """Raise ``TaxProfileInvalidError`` unless ``profile`` can back an invoice.

    Domestic profiles need a plausible CPF/CNPJ and a complete address with a
    known state and an eight-digit postal code. Foreign profiles need a legal
    name.
    """
    if not profile.is_brazilian:
        if not (profile.full_name and profile.full_name.strip()):
            raise TaxProfileInvalidError(
                "International customers must provide full name",
                fields=["full_name"],
            )
        return

    missing = [] if profile.cpf_cnpj else ["cpf_cnpj"]
    missing.extend(
        field
        for field in DOMESTIC_ADDRESS_FIELDS
        if not (getattr(profile, field) or "").strip()
    )
    if missing:
        raise TaxProfileInvalidError(
            "Brazilian customers must provide CPF/CNPJ and complete address",
            fields=missing,
        )

    invalid = []
    if not is_plausible_document(profile.cpf_cnpj or ""):
        invalid.append("cpf_cnpj")
    if (profile.state or "").upper() not in BRAZILIAN_STATES:
        invalid.append("state")
    if len(only_digits(profile.postal_code or "")) != CEP_LENGTH:
        invalid.append("postal_code")
    if invalid:
        raise TaxProfileInvalidError(
            f"Invalid value for: {', '.join(invalid)}",
            fields=invalid,
        )
