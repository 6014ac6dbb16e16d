"""
vault.state: the single owned state object of a vault instance.

Everything the vault mutates lives here: the tree frontier, the spent and
seen sets, balances, counters, lifecycle status and the pending emergency
request. Only `vault.machine` (through `vault.journal`) writes to it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Set

from core.errors import SerializationError

from .tree import TreeState


class VaultStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    EMERGENCY_PAUSED = "emergency_paused"


@dataclass
class VaultState:
    tree: TreeState
    owner: int
    status: VaultStatus = VaultStatus.ACTIVE
    spent: Set[int] = field(default_factory=set)
    commitments: Set[int] = field(default_factory=set)
    pool_balance: int = 0
    fee_balance: int = 0
    deposit_count: int = 0
    withdrawal_count: int = 0
    total_fees: int = 0
    emergency_eta: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tree": self.tree.to_dict(),
            "owner": self.owner,
            "status": self.status.value,
            "spent": sorted(self.spent),
            "commitments": sorted(self.commitments),
            "poolBalance": self.pool_balance,
            "feeBalance": self.fee_balance,
            "depositCount": self.deposit_count,
            "withdrawalCount": self.withdrawal_count,
            "totalFees": self.total_fees,
            "emergencyEta": self.emergency_eta,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "VaultState":
        try:
            eta = d.get("emergencyEta")
            return cls(
                tree=TreeState.from_dict(d["tree"]),
                owner=int(d["owner"]),
                status=VaultStatus(d["status"]),
                spent={int(x) for x in d["spent"]},
                commitments={int(x) for x in d["commitments"]},
                pool_balance=int(d["poolBalance"]),
                fee_balance=int(d["feeBalance"]),
                deposit_count=int(d["depositCount"]),
                withdrawal_count=int(d["withdrawalCount"]),
                total_fees=int(d["totalFees"]),
                emergency_eta=None if eta is None else float(eta),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError("malformed vault state", reason=str(e)) from e


__all__ = ["VaultStatus", "VaultState"]
