from datetime import date

import pytest

from budget_sync.models import BankTransaction, LedgerCategory, LedgerTransaction, Money


@pytest.fixture
def make_bank_tx():
    counter = {"n": 0}

    def _make(
        day: date,
        amount: str = "-25.00",
        account_id: str = "acc-1",
        description: str = "Card payment",
        merchant_name: str | None = None,
        tx_id: str | None = None,
    ) -> BankTransaction:
        counter["n"] += 1
        return BankTransaction(
            id=tx_id or f"bank-{counter['n']}",
            account_id=account_id,
            date=day,
            amount=Money.of(amount),
            description=description,
            merchant_name=merchant_name,
        )

    return _make


@pytest.fixture
def make_ledger_tx():
    counter = {"n": 0}

    def _make(
        day: date,
        amount: str = "-25.00",
        account_id: str = "acc-1",
        payee_name: str | None = None,
        tx_id: str | None = None,
    ) -> LedgerTransaction:
        counter["n"] += 1
        return LedgerTransaction(
            id=tx_id or f"ledger-{counter['n']}",
            account_id=account_id,
            date=day,
            amount=Money.of(amount),
            payee_name=payee_name,
        )

    return _make


@pytest.fixture
def catalog():
    return [
        LedgerCategory(id="cat-dining", name="Dining Out", group_id="grp-food", group_name="Food & Dining"),
        LedgerCategory(id="cat-groceries", name="Groceries", group_id="grp-food", group_name="Food & Dining"),
        LedgerCategory(id="cat-fuel", name="Fuel", group_id="grp-auto", group_name="Transportation"),
    ]
