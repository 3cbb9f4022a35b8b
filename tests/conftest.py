"""Shared fixtures: an in-memory ledger seeded with a few accounts and categories."""

from decimal import Decimal

import pytest

from ledger_engine.audit import AuditLogger
from ledger_engine.models.ledger import (
    Account,
    Category,
    CategoryType,
    Currency,
    SessionContext,
)
from ledger_engine.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerRepository,
)


@pytest.fixture
def session():
    return SessionContext(user_id="user-1")


@pytest.fixture
def checking():
    return Account(
        id="acc-checking",
        user_id="user-1",
        name="Bancolombia",
        balances={Currency.USD: Decimal("100"), Currency.COP: Decimal("50000")},
    )


@pytest.fixture
def cash():
    return Account(id="acc-cash", user_id="user-1", name="Efectivo")


@pytest.fixture
def food():
    return Category(id="cat-food", user_id="user-1", name="Comida", type=CategoryType.EXPENSE)


@pytest.fixture
def salary():
    return Category(id="cat-salary", user_id="user-1", name="Salario", type=CategoryType.INCOME)


@pytest.fixture
def repository(checking, cash, food, salary):
    repo = InMemoryLedgerRepository()
    repo.add_account(checking)
    repo.add_account(cash)
    repo.add_category(food)
    repo.add_category(salary)
    return repo


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)
