"""Infrastructure-related constants."""

# Database
POOL_RECYCLE_SECONDS = 3600
COMMAND_TIMEOUT_SECONDS = 60

# Constraint naming convention used by models and Alembic autogenerate
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Outbound HTTP client names (keys of the HTTP client registry)
FISCAL_API_CLIENT = "fiscal_api"
PAYMENT_PROCESSOR_CLIENT = "payment_processor"
PTAX_CLIENT = "ptax"
IBGE_CLIENT = "ibge"
