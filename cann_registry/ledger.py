"""Ledger query surface consumed by the services and the resolver."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Protocol, Sequence, Tuple

from .model import UTXO, HistoryEntry
from .transaction import Transaction

logger = logging.getLogger(__name__)

MAX_FETCH_WORKERS = 8


class LedgerProvider(Protocol):
    """Read-only view of the ledger.

    Implementations return unspent outputs with their ``locking_bytecode``
    filled in for the queried address, and histories in ledger order
    (confirmed by height, then unconfirmed entries with a height of 0 or -1).
    """

    def get_unspent_outputs(self, address: str) -> List[UTXO]:
        ...

    def get_transaction(self, txid: str) -> str:
        ...

    def get_address_history(self, address: str) -> List[HistoryEntry]:
        ...

    def get_transaction_height(self, txid: str) -> int:
        ...

    def get_scripthash_history(self, scripthash: str) -> List[HistoryEntry]:
        ...


def fetch_concurrently(*calls: Callable[[], Any]) -> Tuple[Any, ...]:
    """Run independent fetches on a thread pool and return results in call order.

    The first failure propagates unchanged once every call has finished.
    """

    if len(calls) <= 1:
        return tuple(call() for call in calls)
    with ThreadPoolExecutor(max_workers=min(len(calls), MAX_FETCH_WORKERS)) as pool:
        futures = [pool.submit(call) for call in calls]
        return tuple(future.result() for future in futures)


def fetch_all(fn: Callable[[Any], Any], items: Sequence[Any]) -> List[Any]:
    """Apply ``fn`` to every item concurrently, preserving order."""

    if not items:
        return []
    with ThreadPoolExecutor(max_workers=min(len(items), MAX_FETCH_WORKERS)) as pool:
        return list(pool.map(fn, items))


def fetch_decoded_transaction(ledger: LedgerProvider, txid: str) -> Transaction:
    raw_hex = ledger.get_transaction(txid)
    logger.debug("Fetched transaction %s (%d bytes)", txid, len(raw_hex) // 2)
    return Transaction.from_hex(raw_hex)
