"""Persistence: models, session factory and repository."""
