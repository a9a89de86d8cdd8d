"""Fiscalis - NFS-e issuance backend.

Converts captured payments to BRL, issues Brazilian service invoices through an
external tax API and keeps them in sync through signed webhooks.

Layers:
- **api**: FastAPI application, middleware and routes
- **core**: configuration, errors, logging and tracing
- **domain**: fiscal rules (currency conversion, customer payloads, issuance,
  webhook reconciliation)
- **infrastructure**: PostgreSQL persistence and outbound HTTP clients
"""
