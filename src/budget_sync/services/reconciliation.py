from bisect import bisect_left
from collections.abc import Sequence

from budget_sync.domain.matching import BankTransactionAdapter, LedgerTransactionAdapter, TransactionMatcher
from budget_sync.errors import require
from budget_sync.logger import get_logger
from budget_sync.models import BankTransaction, LedgerTransaction, TransactionMatchResult

logger = get_logger(__name__)


class TransactionReconciliationService:
    """Pairs bank transactions with ledger transactions, one to one.

    Both sides are sorted by date. Each bank transaction takes the first
    unconsumed ledger transaction inside its search window that the matcher
    accepts, so a ledger entry is never claimed twice.
    """

    def reconcile_transactions(
        self,
        bank_transactions: Sequence[BankTransaction],
        ledger_transactions: Sequence[LedgerTransaction],
        matcher: TransactionMatcher,
    ) -> TransactionMatchResult:
        require(bank_transactions, "bank_transactions")
        require(ledger_transactions, "ledger_transactions")
        require(matcher, "matcher")

        if not bank_transactions:
            return TransactionMatchResult()
        if not ledger_transactions:
            logger.debug("[RECONCILE] Ledger is empty; %d bank transactions missing.", len(bank_transactions))
            return TransactionMatchResult(missing=list(bank_transactions))

        sorted_bank = sorted(bank_transactions, key=lambda t: t.date)
        sorted_ledger = [LedgerTransactionAdapter(t) for t in sorted(ledger_transactions, key=lambda t: t.date)]
        ledger_dates = [adapter.date for adapter in sorted_ledger]
        consumed: set[int] = set()

        matched: list[BankTransaction] = []
        missing: list[BankTransaction] = []
        pairs: list[tuple[str, str]] = []
        inspected = 0

        for bank_tx in sorted_bank:
            bank = BankTransactionAdapter(bank_tx)
            window = matcher.search_window(bank.date)
            index = bisect_left(ledger_dates, window.start)
            found: int | None = None

            while index < len(sorted_ledger) and ledger_dates[index] <= window.end:
                if index not in consumed:
                    inspected += 1
                    if matcher.matches(bank, sorted_ledger[index]):
                        found = index
                        break
                index += 1

            if found is None:
                missing.append(bank_tx)
                continue
            consumed.add(found)
            matched.append(bank_tx)
            pairs.append((bank_tx.id, sorted_ledger[found].id))

        logger.debug(
            "[RECONCILE] %s: %d matched, %d missing, %d candidates inspected.",
            matcher.strategy.value,
            len(matched),
            len(missing),
            inspected,
        )
        return TransactionMatchResult(matched=matched, missing=missing, matched_pairs=pairs)
