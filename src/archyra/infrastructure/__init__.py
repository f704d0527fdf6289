"""Infrastructure layer — SQLite snapshot storage and the workspace.

This layer depends on stdlib and third-party libs (SQLAlchemy).
It must never import from domain, services, commands, or output.
Snapshots cross this boundary as plain JSON-compatible dicts.
"""
