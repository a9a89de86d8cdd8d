"""Customer ("tomador") payloads for the tax API.

Brazilian customers are identified by CPF/CNPJ and a full address with an IBGE
municipality code; foreign customers by legal name, country and an optional
NIF. The two shapes are a tagged union on ``kind``.

``build_tomador`` expects a profile that already passed
``validate_tax_profile``. It does not repeat those checks.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from src.domain.fiscal.tax_profile import CPF_LENGTH, TaxProfile, only_digits


class DomesticAddress(BaseModel):
    model_config = ConfigDict(frozen=True)

    street: str
    number: str
    complement: str | None = None
    neighborhood: str
    city_code: str
    state: str
    postal_code: str


class DomesticTomador(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["domestic"] = "domestic"
    document: str
    name: str
    email: str
    address: DomesticAddress


class ForeignTomador(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["foreign"] = "foreign"
    name: str
    email: str
    country: str
    nif: str | None = None
    foreign_address: str | None = None


type Tomador = Annotated[DomesticTomador | ForeignTomador, Field(discriminator="kind")]


def _fallback_name(document: str) -> str:
    prefix = "CPF" if len(document) <= CPF_LENGTH else "CNPJ"
    return f"{prefix} {document}"


def build_tomador(profile: TaxProfile, email: str) -> DomesticTomador | ForeignTomador:
    """Map a validated tax profile to the customer payload for its jurisdiction."""
    if profile.is_brazilian:
        # Validated profile: document and address fields are present
        document = only_digits(profile.cpf_cnpj or "")
        return DomesticTomador(
            document=document,
            name=profile.full_name or _fallback_name(document),
            email=email,
            address=DomesticAddress(
                street=profile.address or "",
                number=profile.number or "",
                complement=profile.complement or None,
                neighborhood=profile.neighborhood or "",
                city_code=profile.city_code or "",
                state=(profile.state or "").upper(),
                postal_code=only_digits(profile.postal_code or ""),
            ),
        )

    parts = [p for p in (profile.address, profile.city, profile.postal_code) if p]
    return ForeignTomador(
        name=profile.full_name or "",
        email=email,
        country=profile.country.upper(),
        nif=profile.nif or None,
        foreign_address=", ".join(parts) or None,
    )
