"""
TaskBoard Backend - Application Package
=======================================

What: Trello-style task board API (users, sessions, and the auth lifecycle).
Who:  Imported by uvicorn (`taskboard.main:app`), Alembic and pytest.

Architecture Note:
    The backend is layered the same way for every resource:

    ┌─────────────────────────────────────┐
    │      Routes (delivery / HTTP)       │  ← cookies, status codes
    ├─────────────────────────────────────┤
    │       Services (usecases)           │  ← AuthService, UserService
    ├─────────────────────────────────────┤
    │  Repositories / Stores / Hasher     │  ← Postgres, Redis, bcrypt
    └─────────────────────────────────────┘

    Routes never talk to Postgres or Redis directly; services depend only on
    the abstract store interfaces, so each layer can be tested in isolation.
"""

__version__ = "1.0.0"
