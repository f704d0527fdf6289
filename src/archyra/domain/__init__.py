"""Domain layer — node/edge models, hierarchy rules, placement policy.

This layer depends only on stdlib, pydantic and networkx.
It must never import from services, infrastructure, commands, or config.
"""
