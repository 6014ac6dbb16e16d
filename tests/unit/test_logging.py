import io
import json
import logging

from core import logging as vlog


def _capture(json_mode: bool) -> io.StringIO:
    buf = io.StringIO()
    vlog.configure(json=json_mode, level="DEBUG", stream=buf)
    return buf


def test_json_lines_carry_context_and_extras() -> None:
    buf = _capture(True)
    log = vlog.with_fields(vlog.get_logger("vault.test"), component="vault")
    with vlog.trace_scope("t-1", op="deposit"):
        log.info("deposit accepted", extra={"leaf_index": 3, "commitment": 2**200})
    rec = json.loads(buf.getvalue().strip().splitlines()[-1])
    assert rec["msg"] == "deposit accepted"
    assert rec["trace_id"] == "t-1"
    assert rec["op"] == "deposit"
    assert rec["component"] == "vault"
    assert rec["leaf_index"] == 3
    assert rec["commitment"] == hex(2**200)
    assert vlog.context() == {}


def test_text_format_one_line() -> None:
    buf = _capture(False)
    with vlog.trace_scope(op="withdraw"):
        vlog.get_logger("vault.test").warning("rolled back", extra={"code": "VAULT/PROOF_INVALID"})
    line = buf.getvalue().strip().splitlines()[-1]
    assert "| WARNING |" in line
    assert "op=withdraw" in line
    assert line.endswith("| rolled back")


def test_level_filtering() -> None:
    buf = io.StringIO()
    vlog.configure(json=True, level="ERROR", stream=buf)
    logging.getLogger("vault.test").warning("hidden")
    assert buf.getvalue() == ""
