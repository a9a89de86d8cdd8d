"""create tax_profiles and fiscal_invoices

Revision ID: 0001
Revises:
Create Date: 2025-06-01 12:00:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "tax_profiles",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("country", sa.String(2), nullable=False),
        sa.Column("is_brazilian", sa.Boolean(), nullable=False),
        sa.Column("cpf_cnpj", sa.String(14)),
        sa.Column("nif", sa.String(40)),
        sa.Column("nif_exemption_code", sa.String(10)),
        sa.Column("full_name", sa.String(255)),
        sa.Column("address", sa.String(255)),
        sa.Column("number", sa.String(20)),
        sa.Column("complement", sa.String(100)),
        sa.Column("neighborhood", sa.String(100)),
        sa.Column("city", sa.String(100)),
        sa.Column("city_code", sa.String(7)),
        sa.Column("state", sa.String(2)),
        sa.Column("postal_code", sa.String(20)),
        sa.Column("inscricao_municipal", sa.String(20)),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_tax_profiles")),
        sa.UniqueConstraint("user_id", name=op.f("uq_tax_profiles_user_id")),
    )

    op.create_table(
        "fiscal_invoices",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("tax_profile_id", sa.BigInteger()),
        sa.Column("reference", sa.String(100), nullable=False),
        sa.Column("external_reference", sa.String(150), nullable=False),
        sa.Column("transaction_type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("nfse_number", sa.String(50)),
        sa.Column("pdf_url", sa.Text()),
        sa.Column("xml_url", sa.Text()),
        sa.Column("error_message", sa.Text()),
        sa.Column("cancellation_reason", sa.Text()),
        sa.Column("issued_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("service_description", sa.Text(), nullable=False),
        sa.Column("value_brl", sa.Numeric(12, 2), nullable=False),
        sa.Column("iss_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("iss_value", sa.Numeric(12, 2), nullable=False),
        sa.Column("original_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("original_currency", sa.String(3), nullable=False),
        sa.Column("exchange_rate", sa.Numeric(12, 6), nullable=False),
        sa.Column("conversion_source", sa.String(30), nullable=False),
        sa.Column("rate_timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processor_fees_brl", sa.Numeric(12, 2)),
        sa.Column("processor_net_brl", sa.Numeric(12, 2)),
        sa.Column("customer_name", sa.String(255)),
        sa.Column("customer_email", sa.String(255), nullable=False),
        sa.Column("customer_country", sa.String(2), nullable=False),
        sa.Column("customer_document", sa.String(40)),
        sa.Column("subscription_ref", sa.String(100)),
        sa.Column("processor_invoice_ref", sa.String(100)),
        sa.Column("charge_ref", sa.String(100)),
        sa.Column("payment_intent_ref", sa.String(100)),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_fiscal_invoices")),
        sa.ForeignKeyConstraint(
            ["tax_profile_id"],
            ["tax_profiles.id"],
            name=op.f("fk_fiscal_invoices_tax_profile_id_tax_profiles"),
            ondelete="RESTRICT",
        ),
        sa.UniqueConstraint("reference", name=op.f("uq_fiscal_invoices_reference")),
        sa.UniqueConstraint(
            "external_reference", name=op.f("uq_fiscal_invoices_external_reference")
        ),
    )
    op.create_index(
        op.f("ix_fiscal_invoices_tax_profile_id"), "fiscal_invoices", ["tax_profile_id"]
    )
    op.create_index(op.f("ix_fiscal_invoices_status"), "fiscal_invoices", ["status"])
    op.create_index(
        "ix_fiscal_invoices_user_id_created_at",
        "fiscal_invoices",
        ["user_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_fiscal_invoices_user_id_created_at", table_name="fiscal_invoices")
    op.drop_index(op.f("ix_fiscal_invoices_status"), table_name="fiscal_invoices")
    op.drop_index(
        op.f("ix_fiscal_invoices_tax_profile_id"), table_name="fiscal_invoices"
    )
    op.drop_table("fiscal_invoices")
    op.drop_table("tax_profiles")
