"""Domain layer — operations, errors, path rules, and script parsing.

This layer depends only on stdlib and pydantic.
It must never import from services, infrastructure, commands, or config.
"""
