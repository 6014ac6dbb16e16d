from core.errors import (
    InvalidInput,
    NullifierAlreadySpent,
    SettlementFailed,
    UnknownRoot,
    VaultError,
    VaultErrorCode,
    wrap,
)


def test_to_dict_is_json_safe() -> None:
    err = UnknownRoot(2**200, last_root=b"\x01\x02")
    d = err.to_dict()
    assert d["code"] == "VAULT/UNKNOWN_ROOT"
    assert d["data"]["root"] == hex(2**200)
    assert d["data"]["last_root"] == "0102"
    assert d["retryable"] is True


def test_with_context_does_not_mutate() -> None:
    err = InvalidInput("bad", field="amount")
    richer = err.with_context(value=3)
    assert err.data == {"field": "amount"}
    assert richer.data == {"field": "amount", "value": 3}
    assert isinstance(richer, InvalidInput)


def test_wrap_foreign_exception() -> None:
    cause = ConnectionError("peer gone")
    err = wrap(cause, as_=SettlementFailed, recipient=5)
    assert isinstance(err, SettlementFailed)
    assert err.cause is cause
    assert err.code == VaultErrorCode.SETTLEMENT
    assert err.to_dict(include_cause=True)["cause"]["type"] == "ConnectionError"


def test_wrap_vault_error_keeps_type() -> None:
    err = wrap(NullifierAlreadySpent(7), action="withdraw")
    assert isinstance(err, NullifierAlreadySpent)
    assert err.data["action"] == "withdraw"
    assert isinstance(err, VaultError)
