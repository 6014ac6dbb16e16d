"""
vault.events: append-only event log.

`Deposit` records are the only public source for rebuilding membership paths,
so the log keeps every field needed for that (commitment, leaf index) and
serializes to JSON lines that clients can replay.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Union

from core.errors import SerializationError

# Canonical event names
EV_DEPOSIT = "Deposit"
EV_WITHDRAWAL = "Withdrawal"
EV_PAUSED = "Paused"
EV_UNPAUSED = "Unpaused"
EV_EMERGENCY_REQUESTED = "EmergencyPauseRequested"
EV_EMERGENCY_CANCELED = "EmergencyPauseCanceled"
EV_EMERGENCY_ACTIVATED = "EmergencyPauseActivated"
EV_RESTORED = "Restored"
EV_FEES_WITHDRAWN = "FeesWithdrawn"
EV_EMERGENCY_DRAINED = "EmergencyDrained"
EV_OWNERSHIP_TRANSFERRED = "OwnershipTransferred"


@dataclass(frozen=True)
class DepositEvent:
    commitment: int
    leaf_index: int
    amount: int
    timestamp: float
    depositor: int
    name: str = field(default=EV_DEPOSIT, init=False)


@dataclass(frozen=True)
class WithdrawalEvent:
    nullifier_hash: int
    recipient: int
    amount: int
    fee: int
    timestamp: float
    name: str = field(default=EV_WITHDRAWAL, init=False)


@dataclass(frozen=True)
class AdminEvent:
    name: str
    actor: int
    timestamp: float
    data: Mapping[str, Any] = field(default_factory=dict)


Event = Union[DepositEvent, WithdrawalEvent, AdminEvent]

_INT_FIELDS = ("commitment", "nullifier_hash", "recipient", "depositor", "actor", "amount", "fee")


def event_to_json(ev: Event) -> Dict[str, Any]:
    d = asdict(ev)
    for k in _INT_FIELDS:
        if k in d:
            d[k] = str(d[k])
    if "data" in d:
        d["data"] = {k: (str(v) if isinstance(v, int) and not isinstance(v, bool) else v) for k, v in d["data"].items()}
    return d


def event_from_json(obj: Mapping[str, Any]) -> Event:
    try:
        name = obj["name"]
        if name == EV_DEPOSIT:
            return DepositEvent(
                commitment=int(obj["commitment"]),
                leaf_index=int(obj["leaf_index"]),
                amount=int(obj["amount"]),
                timestamp=float(obj["timestamp"]),
                depositor=int(obj["depositor"]),
            )
        if name == EV_WITHDRAWAL:
            return WithdrawalEvent(
                nullifier_hash=int(obj["nullifier_hash"]),
                recipient=int(obj["recipient"]),
                amount=int(obj["amount"]),
                fee=int(obj["fee"]),
                timestamp=float(obj["timestamp"]),
            )
        return AdminEvent(
            name=str(name),
            actor=int(obj["actor"]),
            timestamp=float(obj["timestamp"]),
            data=dict(obj.get("data") or {}),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise SerializationError("malformed event record", reason=str(e)) from e


class EventLog:
    """In-memory append-only log. Entries are never edited or removed."""

    def __init__(self, events: Iterable[Event] = ()) -> None:
        self._events: List[Event] = list(events)

    def append(self, ev: Event) -> None:
        self._events.append(ev)

    def extend(self, evs: Iterable[Event]) -> None:
        self._events.extend(evs)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(list(self._events))

    def deposits(self) -> List[DepositEvent]:
        return [e for e in self._events if isinstance(e, DepositEvent)]

    def withdrawals(self) -> List[WithdrawalEvent]:
        return [e for e in self._events if isinstance(e, WithdrawalEvent)]

    def named(self, name: str) -> List[Event]:
        return [e for e in self._events if e.name == name]

    # -- JSON lines --

    def dump(self, path: Union[str, Path]) -> Path:
        p = Path(path)
        with p.open("w", encoding="utf-8") as fh:
            for ev in self._events:
                fh.write(json.dumps(event_to_json(ev), sort_keys=True) + "\n")
        return p

    @classmethod
    def load(cls, path: Union[str, Path]) -> "EventLog":
        p = Path(path)
        events: List[Event] = []
        with p.open("r", encoding="utf-8") as fh:
            for lineno, line in enumerate(fh, 1):
                if not line.strip():
                    continue
                try:
                    obj = json.loads(line)
                except json.JSONDecodeError as e:
                    raise SerializationError("bad JSON in event log", path=str(p), line=lineno) from e
                events.append(event_from_json(obj))
        return cls(events)


__all__ = [
    "EV_DEPOSIT",
    "EV_WITHDRAWAL",
    "EV_PAUSED",
    "EV_UNPAUSED",
    "EV_EMERGENCY_REQUESTED",
    "EV_EMERGENCY_CANCELED",
    "EV_EMERGENCY_ACTIVATED",
    "EV_RESTORED",
    "EV_FEES_WITHDRAWN",
    "EV_EMERGENCY_DRAINED",
    "EV_OWNERSHIP_TRANSFERRED",
    "DepositEvent",
    "WithdrawalEvent",
    "AdminEvent",
    "Event",
    "event_to_json",
    "event_from_json",
    "EventLog",
]
