from dataclasses import replace

from vault.fingerprint import (
    RecordingNotifier,
    engine_fingerprint,
    fingerprint_material,
    make_announcement,
    vk_digest,
)
from vault.tests import OWNER, make_harness, small_config
from zk.verifiers import reference


def test_fingerprint_is_deterministic_and_static() -> None:
    cfg = small_config()
    vk = reference.keygen(5)
    fp = engine_fingerprint(cfg, vk)
    assert fp == engine_fingerprint(small_config(), dict(vk))
    assert len(fp) == 64

    assert engine_fingerprint(small_config(depth=5), vk) != fp
    assert engine_fingerprint(replace(cfg, max_deposit=cfg.max_deposit + 1), vk) != fp
    assert engine_fingerprint(cfg, reference.keygen(5)) != fp
    assert engine_fingerprint(cfg, None) != fp


def test_material_lists_the_public_contract() -> None:
    material = fingerprint_material(small_config())
    assert material["publicSignals"] == ["nullifierHash", "root", "recipient", "protocolFee", "amount"]
    assert set(material["poseidon"]) == {"bn254_t3", "bn254_t4"}
    assert material["vk"] is None
    assert vk_digest({"a": [1, 2]}) == vk_digest({"a": (1, 2)})


def test_runtime_state_does_not_change_the_fingerprint() -> None:
    h = make_harness()
    notifier = RecordingNotifier()
    before = h.machine.announce(notifier)
    h.deposit()
    h.machine.pause(OWNER)
    after = h.machine.announce(notifier, instance_id="other")
    assert before.fingerprint == after.fingerprint
    assert [a.instance_id for a in notifier.announcements] == ["test-vault", "other"]
    assert after.announced_at == h.clock.now


def test_announcement_dict_shape() -> None:
    ann = make_announcement("v1", small_config(), now=12.0)
    assert ann.to_dict() == {
        "instanceId": "v1",
        "fingerprint": engine_fingerprint(small_config()),
        "depth": 4,
        "announcedAt": 12.0,
    }
