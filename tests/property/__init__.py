# -*- coding: utf-8 -*-
"""
tests.property package bootstrap.

Shared configuration for property-based tests (Hypothesis).

What this does on import:
- Registers named Hypothesis profiles (dev/ci/fast/stress). Poseidon runs in
  pure Python, so example counts are lower than a byte-codec suite would use.
- Selects the active profile using HYPOTHESIS_PROFILE, otherwise "ci" on CI
  (CI env var present/truthy) and "dev" locally.
- Exports strategies for field elements, leaves and deposit amounts.

Usage in tests:
    from tests.property import given, leaves, st

    @given(leaves(max_size=8))
    def test_something(ls):
        ...

Environment knobs:
- HYPOTHESIS_PROFILE=dev|ci|fast|stress
- CI=true (auto-pick the 'ci' profile if HYPOTHESIS_PROFILE not set)
"""
from __future__ import annotations

import os
from typing import Final, Tuple

from hypothesis import HealthCheck, Verbosity, given, settings
from hypothesis import strategies as st

from zk.verifiers.field import R

# ---- profile registry --------------------------------------------------------


def _hc(*items: HealthCheck) -> Tuple[HealthCheck, ...]:
    return items


settings.register_profile(
    "dev",
    settings(
        max_examples=30,
        deadline=None,
        suppress_health_check=_hc(HealthCheck.too_slow, HealthCheck.filter_too_much),
        verbosity=Verbosity.normal,
    ),
)

settings.register_profile(
    "ci",
    settings(
        max_examples=60,
        deadline=None,
        suppress_health_check=_hc(HealthCheck.too_slow, HealthCheck.filter_too_much),
        verbosity=Verbosity.verbose,
        derandomize=True,
    ),
)

settings.register_profile(
    "fast",
    settings(
        max_examples=10,
        deadline=None,
        suppress_health_check=_hc(HealthCheck.too_slow),
    ),
)

settings.register_profile(
    "stress",
    settings(
        max_examples=500,
        deadline=None,
        suppress_health_check=_hc(
            HealthCheck.too_slow,
            HealthCheck.filter_too_much,
            HealthCheck.data_too_large,
        ),
        derandomize=True,
    ),
)


def _env_truthy(name: str) -> bool:
    v = os.getenv(name)
    return (v or "").lower() not in ("", "0", "false", "no", "off")


_active: Final[str] = os.getenv("HYPOTHESIS_PROFILE") or ("ci" if _env_truthy("CI") else "dev")
settings.load_profile(_active)

# ---- strategies ---------------------------------------------------------------


def active_profile() -> str:
    return _active


def field_elements(min_value: int = 0):
    return st.integers(min_value=min_value, max_value=R - 1)


def leaves(min_size: int = 0, max_size: int = 16):
    """Distinct non-zero field elements, in insertion order."""
    return st.lists(field_elements(1), min_size=min_size, max_size=max_size, unique=True)


def amounts(min_value: int = 10**15, max_value: int = 100 * 10**18):
    return st.integers(min_value=min_value, max_value=max_value)


__all__ = ["st", "given", "active_profile", "field_elements", "leaves", "amounts"]
