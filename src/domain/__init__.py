"""Business rules, independent of FastAPI and of the concrete storage and clients."""
