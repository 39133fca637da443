"""Shared test fixtures.

Each test gets a fresh in-memory SQLite database, so services can commit
and roll back for real without tests polluting each other.
"""

from __future__ import annotations

import os
from decimal import Decimal
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Keep the app from touching a real database file
os.environ.setdefault("AUTO_CREATE_TABLES", "false")

from livraria.app.core.database import Base, get_db  # noqa: E402
from livraria.app.core.session import SessionContext, session_registry  # noqa: E402
from livraria.app.main import app  # noqa: E402
from livraria.app.models.customer import Customer  # noqa: E402
from livraria.app.models.inventory import Book  # noqa: E402


# ─── DB session on a throwaway database ──────────────────────────────────────


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def client(db: Session) -> Generator[TestClient, None, None]:
    """FastAPI TestClient wired to the test session."""

    def _override_get_db() -> Generator[Session, None, None]:
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ─── Register sessions ───────────────────────────────────────────────────────


@pytest.fixture()
def ctx() -> Generator[SessionContext, None, None]:
    context = session_registry.open(user_id="user-1", responsible="Maria Caixa", register="caixa-1")
    yield context
    session_registry.clear()


@pytest.fixture()
def session_headers(ctx: SessionContext) -> dict[str, str]:
    return {"X-Session-Token": ctx.token}


# ─── Catalogue fixtures ──────────────────────────────────────────────────────


@pytest.fixture()
def book_a(db: Session) -> Book:
    book = Book(
        title="Dom Casmurro",
        author="Machado de Assis",
        isbn="9788535910667",
        selling_price=Decimal("100.00"),
        purchase_price=Decimal("60.00"),
        quantity=50,
        minimum_stock=5,
    )
    db.add(book)
    db.commit()
    return book


@pytest.fixture()
def book_b(db: Session) -> Book:
    book = Book(
        title="Vidas Secas",
        author="Graciliano Ramos",
        isbn="9788501012081",
        selling_price=Decimal("50.00"),
        purchase_price=Decimal("25.00"),
        quantity=30,
        minimum_stock=3,
    )
    db.add(book)
    db.commit()
    return book


@pytest.fixture()
def customer(db: Session) -> Customer:
    c = Customer(name="João Leitor", email="joao@example.com", cpf="123.456.789-00")
    db.add(c)
    db.commit()
    return c
