"""Infrastructure layer — SQLite-backed repository driver.

This layer depends on stdlib and third-party libs (SQLAlchemy, NetworkX)
plus domain types and errors. It must never import from services,
commands, or output. The service layer drives it through a session.
"""
