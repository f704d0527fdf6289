"""Service layer — the mutation engine, load-time migration, persistence,
and the CLI-facing services that return ServiceResult.

Services may import from domain and infrastructure layers.
They must never import from commands or output.
"""
