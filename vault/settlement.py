"""
vault.settlement: outbound value transfer.

The vault never holds "real" funds; it asks a `Settlement` to move value to a
recipient and trusts it to raise if the move did not happen. `LedgerSettlement`
is an in-memory account ledger used by tests, the CLI and simulations.
"""

from __future__ import annotations

from typing import Dict, List, Protocol, Tuple, runtime_checkable

from core.errors import InvalidInput
from core.logging import get_logger

log = get_logger("vault.settlement")


@runtime_checkable
class Settlement(Protocol):
    def transfer(self, recipient: int, value: int) -> None:
        """Move `value` to `recipient` or raise."""
        ...


class LedgerSettlement:
    """Credits recipients in a dict. Every credit is also kept in `transfers`."""

    def __init__(self) -> None:
        self.balances: Dict[int, int] = {}
        self.transfers: List[Tuple[int, int]] = []

    def transfer(self, recipient: int, value: int) -> None:
        if value < 0:
            raise InvalidInput("negative transfer", value=value)
        self.balances[recipient] = self.balances.get(recipient, 0) + value
        self.transfers.append((recipient, value))
        log.debug("ledger credit", extra={"recipient": recipient, "value": value})

    def balance_of(self, account: int) -> int:
        return self.balances.get(account, 0)


__all__ = ["Settlement", "LedgerSettlement"]
