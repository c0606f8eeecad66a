"""
EcoPlate Backend — Application Package
=======================================

What: Household food tracking, surplus-food marketplace, buyer/seller
      messaging and a points/badges layer, served as a FastAPI app.
Who:  Imported by uvicorn (`uvicorn ecoplate.main:app`), Alembic and pytest.

Layers:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │    Services (Business Logic)        │  ← points, badges, marketplace, ...
    ├─────────────────────────────────────┤
    │  Models / Schemas / Utils (Data)    │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
