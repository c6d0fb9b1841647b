"""
Multi-asset wallet backed by an append-only transaction log.
"""

from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from .transaction import Transaction


class Wallet:
    """
    Ledger of balances per asset.

    Balances are never written directly: every change goes through add(),
    which appends to the log and folds the quantity into the running sum.
    The wallet does not enforce non-negative balances.
    """

    def __init__(self):
        self._transactions: List[Transaction] = []
        self._balances: Dict[str, Decimal] = {}

    def add(self, transaction: Transaction) -> None:
        """Append a transaction and update the asset's running balance."""
        self._transactions.append(transaction)
        self._balances[transaction.asset] = (
            self._balances.get(transaction.asset, Decimal("0")) + transaction.quantity
        )

    def balances(self) -> Dict[str, Decimal]:
        """Snapshot of current balances keyed by asset code."""
        return dict(self._balances)

    def transactions(self) -> Tuple[Transaction, ...]:
        """Full transaction history in insertion order."""
        return tuple(self._transactions)

    def has_sufficient_funds(self, asset: str, required: Decimal) -> Optional[Decimal]:
        """
        Point-in-time funds check.

        Args:
            asset: Asset code to check
            required: Amount the caller intends to spend

        Returns:
            The current balance if it covers the requirement, None otherwise
            (including when the asset has never been funded)
        """
        funds = self._balances.get(asset)
        if funds is not None and funds >= required:
            return funds
        return None

    def recompute_balances(self) -> Dict[str, Decimal]:
        """Fold the whole transaction log from empty."""
        balances: Dict[str, Decimal] = {}
        for tx in self._transactions:
            balances[tx.asset] = balances.get(tx.asset, Decimal("0")) + tx.quantity
        return balances

    def __len__(self) -> int:
        return len(self._transactions)
