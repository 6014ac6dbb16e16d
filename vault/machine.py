"""
vault.machine: the vault state machine.

Serialized execution
--------------------
One re-entrant lock per instance guards every operation, queries included.
Inside the lock, state writes go through a `Journal` transaction: all
preconditions are checked first, then the effects are applied, and any
exception raised along the way (a failed proof, a settlement error, a bug)
restores the previous state exactly. Events are published only after commit.

Withdrawal ordering
-------------------
    check preconditions          (no writes)
    mark nullifierHash spent
    verify(proof, signals)       (opaque capability)
    update balances / counters
    settle amount - fee to recipient
    publish Withdrawal event

The spent mark precedes verification, and the whole block rolls back on any
failure, so a nullifier is never left spent without a payout and is never
spendable twice.

Lifecycle
---------
    ACTIVE ⇄ PAUSED                      pause / unpause
    ACTIVE|PAUSED → EMERGENCY_PAUSED     request_emergency_pause, wait, activate_emergency_pause
    EMERGENCY_PAUSED → ACTIVE            restore_active

Admin operations require the owner capability and never touch the spent set,
the seen set or the tree.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from typing import Any, Callable, Iterator, List, Mapping, Optional, Sequence, Union

from core.config import VaultConfig
from core.errors import (
    DuplicateCommitment,
    InsufficientFunds,
    InvalidInput,
    NullifierAlreadySpent,
    ProofInvalid,
    SettlementFailed,
    TimelockNotReady,
    UnknownRoot,
    VaultError,
    wrap,
)
from core.logging import get_logger, trace_scope, with_fields
from zk.verifiers import ZKError
from zk.verifiers.field import is_canonical

from . import access, timelock
from .boundary import ADDRESS_LIMIT, Groth16Proof, ProofVerifier, PublicSignals, fee_cap
from .events import (
    EV_EMERGENCY_ACTIVATED,
    EV_EMERGENCY_CANCELED,
    EV_EMERGENCY_DRAINED,
    EV_EMERGENCY_REQUESTED,
    EV_FEES_WITHDRAWN,
    EV_OWNERSHIP_TRANSFERRED,
    EV_PAUSED,
    EV_RESTORED,
    EV_UNPAUSED,
    AdminEvent,
    DepositEvent,
    Event,
    EventLog,
    WithdrawalEvent,
)
from .fingerprint import Announcement, RegistryNotifier, make_announcement
from .journal import Journal
from .settlement import Settlement
from .state import VaultState, VaultStatus
from .tree import IncrementalMerkleTree

Clock = Callable[[], float]


def _is_int(x: Any) -> bool:
    return isinstance(x, int) and not isinstance(x, bool)


@dataclass(frozen=True)
class VaultStatistics:
    status: str
    deposits: int
    withdrawals: int
    total_fees: int
    next_index: int
    capacity: int
    current_root: int
    pool_balance: int
    fee_balance: int

    def to_dict(self) -> dict:
        return asdict(self)


class VaultStateMachine:
    def __init__(
        self,
        config: VaultConfig,
        verifier: ProofVerifier,
        settlement: Settlement,
        *,
        owner: Optional[int] = None,
        state: Optional[VaultState] = None,
        events: Optional[EventLog] = None,
        clock: Clock = time.time,
        name: str = "vault",
    ) -> None:
        config.validate()
        self.config = config
        self.verifier = verifier
        self.settlement = settlement
        self.clock = clock
        self.name = name

        if state is None:
            if not owner:
                raise InvalidInput("a new vault needs a non-zero owner")
            self.tree = IncrementalMerkleTree(config.depth, config.root_history_size)
            state = VaultState(tree=self.tree.state, owner=owner)
        else:
            self.tree = IncrementalMerkleTree(
                config.depth, config.root_history_size, state=state.tree
            )
        self.state = state
        self.journal = Journal(state)
        self.events = events if events is not None else EventLog()
        self._lock = threading.RLock()
        self.log = with_fields(get_logger("vault.machine"), component="vault", vault=name)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def _atomic(self) -> Iterator[List[Event]]:
        pending: List[Event] = []
        with self._lock:
            with self.journal.transaction():
                yield pending
            self.events.extend(pending)

    def _pay(self, recipient: int, value: int, action: str) -> None:
        try:
            self.settlement.transfer(recipient, value)
        except VaultError:
            raise
        except Exception as e:
            raise wrap(e, as_=SettlementFailed, action=action, recipient=recipient, value=value) from e

    # ------------------------------------------------------------------
    # Deposit
    # ------------------------------------------------------------------

    def deposit(self, commitment: int, value: int, *, depositor: int = 0) -> DepositEvent:
        with self._lock, trace_scope(op="deposit"):
            st, cfg = self.state, self.config
            access.require_status(st, "deposit", VaultStatus.ACTIVE)
            if not _is_int(commitment) or not is_canonical(commitment):
                raise InvalidInput("commitment must be a canonical field element")
            if commitment == 0:
                raise InvalidInput("commitment must be non-zero")
            if not _is_int(value) or not cfg.min_deposit <= value <= cfg.max_deposit:
                raise InvalidInput(
                    "deposit value out of range",
                    value=value,
                    min=cfg.min_deposit,
                    max=cfg.max_deposit,
                )
            if commitment in st.commitments:
                raise DuplicateCommitment(commitment)
            plan = self.tree.plan_insert(commitment)

            with self._atomic() as pending:
                self.journal.mark_seen(commitment)
                index = self.journal.insert(self.tree, plan)
                self.journal.add("pool_balance", value)
                self.journal.add("deposit_count", 1)
                ev = DepositEvent(
                    commitment=commitment,
                    leaf_index=index,
                    amount=value,
                    timestamp=self.clock(),
                    depositor=depositor,
                )
                pending.append(ev)

            self.log.info(
                "deposit accepted",
                extra={"op": "deposit", "commitment": commitment, "leaf_index": index, "root": plan.root},
            )
            return ev

    # ------------------------------------------------------------------
    # Withdraw
    # ------------------------------------------------------------------

    def _check_withdrawal(self, s: PublicSignals) -> None:
        st, cfg = self.state, self.config
        access.require_status(st, "withdraw", VaultStatus.ACTIVE)
        if s.nullifier_hash == 0:
            raise InvalidInput("nullifier hash must be non-zero")
        if s.nullifier_hash in st.spent:
            raise NullifierAlreadySpent(s.nullifier_hash)
        if s.recipient == 0:
            raise InvalidInput("recipient must be non-zero")
        if s.recipient >= ADDRESS_LIMIT:
            raise InvalidInput("recipient does not fit 160 bits")
        if not cfg.min_deposit <= s.amount <= cfg.max_deposit:
            raise InvalidInput(
                "withdrawal amount out of range",
                amount=s.amount,
                min=cfg.min_deposit,
                max=cfg.max_deposit,
            )
        if s.protocol_fee > fee_cap(s.amount):
            raise InvalidInput(
                "protocol fee above 1% of amount", fee=s.protocol_fee, cap=fee_cap(s.amount)
            )
        if s.amount > st.pool_balance:
            raise InsufficientFunds(s.amount, st.pool_balance)
        if s.root == 0:
            raise InvalidInput("root must be non-zero")
        if not self.tree.is_known_root(s.root):
            raise UnknownRoot(s.root, last_root=hex(self.tree.last_root()))

    def _verify(self, proof: Mapping[str, Any], s: PublicSignals) -> None:
        try:
            ok = self.verifier.verify(proof, s.to_list())
        except ZKError as e:
            raise InvalidInput("malformed proof", reason=str(e)) from e
        if not ok:
            raise ProofInvalid(nullifier_hash=hex(s.nullifier_hash), root=hex(s.root))

    def withdraw(
        self, proof: Mapping[str, Any], public_signals: Union[PublicSignals, Sequence[Any]]
    ) -> WithdrawalEvent:
        s = PublicSignals.coerce(public_signals)
        with self._lock, trace_scope(op="withdraw"):
            self._check_withdrawal(s)
            payout = s.amount - s.protocol_fee
            try:
                with self._atomic() as pending:
                    self.journal.mark_spent(s.nullifier_hash)
                    self._verify(proof, s)
                    self.journal.add("pool_balance", -s.amount)
                    self.journal.add("fee_balance", s.protocol_fee)
                    self.journal.add("withdrawal_count", 1)
                    self.journal.add("total_fees", s.protocol_fee)
                    self._pay(s.recipient, payout, "withdraw")
                    ev = WithdrawalEvent(
                        nullifier_hash=s.nullifier_hash,
                        recipient=s.recipient,
                        amount=s.amount,
                        fee=s.protocol_fee,
                        timestamp=self.clock(),
                    )
                    pending.append(ev)
            except VaultError as e:
                self.log.warning(
                    "withdrawal rolled back",
                    extra={"op": "withdraw", "code": str(e.code), "nullifier_hash": s.nullifier_hash},
                )
                raise

            self.log.info(
                "withdrawal settled",
                extra={"op": "withdraw", "nullifier_hash": s.nullifier_hash, "payout": payout, "fee": s.protocol_fee},
            )
            return ev

    def withdraw_calldata(
        self,
        proof_a: Sequence[Any],
        proof_b: Sequence[Sequence[Any]],
        proof_c: Sequence[Any],
        public_signals: Sequence[Any],
    ) -> WithdrawalEvent:
        """Entry point taking Solidity-ordered Groth16 calldata."""
        proof = Groth16Proof.from_calldata(proof_a, proof_b, proof_c).to_snarkjs()
        return self.withdraw(proof, public_signals)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def status(self) -> VaultStatus:
        with self._lock:
            return self.state.status

    @property
    def owner(self) -> int:
        with self._lock:
            return self.state.owner

    def get_last_root(self) -> int:
        with self._lock:
            return self.tree.last_root()

    def is_known_root(self, root: int) -> bool:
        with self._lock:
            return self.tree.is_known_root(root)

    def get_zero(self, level: int) -> int:
        return self.tree.get_zero(level)

    def is_spent(self, nullifier_hash: int) -> bool:
        with self._lock:
            return nullifier_hash in self.state.spent

    def is_committed(self, commitment: int) -> bool:
        with self._lock:
            return commitment in self.state.commitments

    def state_dict(self) -> dict:
        """Consistent plain-data copy of the whole state (for snapshots)."""
        with self._lock:
            return self.state.to_dict()

    def statistics(self) -> VaultStatistics:
        with self._lock:
            st = self.state
            return VaultStatistics(
                status=st.status.value,
                deposits=st.deposit_count,
                withdrawals=st.withdrawal_count,
                total_fees=st.total_fees,
                next_index=st.tree.next_index,
                capacity=self.tree.capacity,
                current_root=self.tree.last_root(),
                pool_balance=st.pool_balance,
                fee_balance=st.fee_balance,
            )

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def _admin_event(self, pending: List[Event], name: str, caller: int, **data: Any) -> None:
        pending.append(AdminEvent(name=name, actor=caller, timestamp=self.clock(), data=data))
        self.log.info("admin action", extra={"op": name, "actor": caller, **data})

    def pause(self, caller: int) -> None:
        with self._lock:
            access.require_owner(self.state, caller, "pause")
            access.require_status(self.state, "pause", VaultStatus.ACTIVE)
            with self._atomic() as pending:
                self.journal.set("status", VaultStatus.PAUSED)
                self._admin_event(pending, EV_PAUSED, caller)

    def unpause(self, caller: int) -> None:
        with self._lock:
            access.require_owner(self.state, caller, "unpause")
            access.require_status(self.state, "unpause", VaultStatus.PAUSED)
            with self._atomic() as pending:
                self.journal.set("status", VaultStatus.ACTIVE)
                self._admin_event(pending, EV_UNPAUSED, caller)

    def request_emergency_pause(self, caller: int) -> float:
        """Start the emergency timelock. Returns the earliest activation time."""
        with self._lock:
            access.require_owner(self.state, caller, "request emergency pause")
            access.require_status(
                self.state, "request emergency pause", VaultStatus.ACTIVE, VaultStatus.PAUSED
            )
            eta = timelock.schedule(self.clock(), self.config.emergency_delay)
            with self._atomic() as pending:
                self.journal.set("emergency_eta", eta)
                self._admin_event(pending, EV_EMERGENCY_REQUESTED, caller, eta=eta)
            return eta

    def cancel_emergency_pause(self, caller: int) -> None:
        with self._lock:
            access.require_owner(self.state, caller, "cancel emergency pause")
            if self.state.emergency_eta is None:
                raise TimelockNotReady("no emergency pause has been requested")
            with self._atomic() as pending:
                self.journal.set("emergency_eta", None)
                self._admin_event(pending, EV_EMERGENCY_CANCELED, caller)

    def activate_emergency_pause(self, caller: int) -> None:
        with self._lock:
            access.require_owner(self.state, caller, "activate emergency pause")
            access.require_status(
                self.state, "activate emergency pause", VaultStatus.ACTIVE, VaultStatus.PAUSED
            )
            timelock.require_ready(
                self.state.emergency_eta, self.clock(), self.config.emergency_grace
            )
            with self._atomic() as pending:
                self.journal.set("status", VaultStatus.EMERGENCY_PAUSED)
                self.journal.set("emergency_eta", None)
                self._admin_event(pending, EV_EMERGENCY_ACTIVATED, caller)

    def restore_active(self, caller: int) -> None:
        with self._lock:
            access.require_owner(self.state, caller, "restore")
            access.require_status(self.state, "restore", VaultStatus.EMERGENCY_PAUSED)
            with self._atomic() as pending:
                self.journal.set("status", VaultStatus.ACTIVE)
                self._admin_event(pending, EV_RESTORED, caller)

    def withdraw_fees(self, caller: int, to: int) -> int:
        """Pay the accumulated fee balance to `to`. Returns the amount paid."""
        with self._lock:
            access.require_owner(self.state, caller, "withdraw fees")
            if not to:
                raise InvalidInput("fee recipient must be non-zero")
            amount = self.state.fee_balance
            if amount == 0:
                raise InsufficientFunds(1, 0, balance="fees")
            with self._atomic() as pending:
                self.journal.set("fee_balance", 0)
                self._pay(to, amount, "withdraw fees")
                self._admin_event(pending, EV_FEES_WITHDRAWN, caller, to=to, amount=amount)
            return amount

    def emergency_drain(self, caller: int, to: int) -> int:
        """Move the whole pool balance to `to`. Only while Paused."""
        with self._lock:
            access.require_owner(self.state, caller, "emergency drain")
            access.require_status(self.state, "emergency drain", VaultStatus.PAUSED)
            if not to:
                raise InvalidInput("drain recipient must be non-zero")
            amount = self.state.pool_balance
            with self._atomic() as pending:
                self.journal.set("pool_balance", 0)
                if amount:
                    self._pay(to, amount, "emergency drain")
                self._admin_event(pending, EV_EMERGENCY_DRAINED, caller, to=to, amount=amount)
            return amount

    def transfer_ownership(self, caller: int, new_owner: int) -> None:
        with self._lock:
            with self._atomic() as pending:
                previous = access.transfer_ownership(self.journal, caller, new_owner)
                self._admin_event(
                    pending, EV_OWNERSHIP_TRANSFERRED, caller, previous=previous, new_owner=new_owner
                )

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def announce(self, notifier: RegistryNotifier, instance_id: Optional[str] = None) -> Announcement:
        """One-way notice to a registry. Nothing is read back."""
        vk = getattr(self.verifier, "vk", None)
        ann = make_announcement(instance_id or self.name, self.config, vk, now=self.clock())
        notifier.announce(ann)
        self.log.info("announced", extra={"fingerprint": ann.fingerprint, "instance": ann.instance_id})
        return ann


__all__ = ["Clock", "VaultStatistics", "VaultStateMachine"]
