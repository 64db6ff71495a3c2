"""Persistence layer: models, session factory and the workflow store."""
