"""
zk.verifiers.pairing_bn254
==========================

Thin BN254 (altbn128) Ate pairing wrapper over `py_ecc.optimized_bn128`.

Public API
----------
- pair(P: G1Point, Q: G2Point) -> GTElement
- product_of_pairings(pairs) -> GTElement
- check_pairing_product(pairs) -> bool
- is_on_curve_g1(P), is_on_curve_g2(Q), in_subgroup_g2(Q)
- g1_from_ints(x, y) / g2_from_ints((x0, x1), (y0, y1))
- normalize_g1(P) / normalize_g2(Q)  (to affine integers)
- g1_generator(), g2_generator(), g1_mul(P, k), g2_mul(Q, k), g1_add, g1_neg
- curve_order(), field_modulus()

Notes
-----
- Point ordering follows the common convention e(P, Q) with P in G1, Q in G2.
  The underlying `py_ecc` pairing call expects (Q, P); this wrapper handles it.
- `product_of_pairings` runs one Miller loop per pair and a *single* final
  exponentiation for the whole product.
- Points are validated (on-curve) before pairing; the point at infinity pairs
  to the identity in GT.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional, Sequence, Tuple

from py_ecc.optimized_bn128 import FQ, FQ2, FQ12, G1, G2
from py_ecc.optimized_bn128 import add as _add
from py_ecc.optimized_bn128 import b as _B
from py_ecc.optimized_bn128 import b2 as _B2
from py_ecc.optimized_bn128 import curve_order as _Q
from py_ecc.optimized_bn128 import field_modulus as _P
from py_ecc.optimized_bn128 import final_exponentiate as _final_exp
from py_ecc.optimized_bn128 import is_inf as _is_inf
from py_ecc.optimized_bn128 import is_on_curve as _is_on_curve
from py_ecc.optimized_bn128 import multiply as _multiply
from py_ecc.optimized_bn128 import neg as _neg
from py_ecc.optimized_bn128 import normalize as _normalize
from py_ecc.optimized_bn128 import pairing as _pairing

# Points are opaque projective triples understood by py_ecc.
G1Point = Any
G2Point = Any
GTElement = FQ12

BACKEND_NAME = "py_ecc.optimized_bn128"


def curve_order() -> int:
    """Return the BN254 subgroup order r (the scalar field modulus)."""
    return int(_Q)


def field_modulus() -> int:
    """Return the base field modulus p."""
    return int(_P)


def g1_generator() -> G1Point:
    return G1


def g2_generator() -> G2Point:
    return G2


# -------------------------
# Construction & checks
# -------------------------


def g1_from_ints(x: int, y: int) -> G1Point:
    # snarkjs encodes infinity as (0, 0)
    if x == 0 and y == 0:
        return (FQ(1), FQ(1), FQ(0))
    if not (0 <= x < _P and 0 <= y < _P):
        raise ValueError("G1 coordinate out of range")
    return (FQ(x), FQ(y), FQ(1))


def g2_from_ints(xx: Sequence[int], yy: Sequence[int]) -> G2Point:
    """Build a G2 point from Fq2 coordinates encoded as [c0, c1] (value = c0 + c1*i)."""
    x0, x1 = int(xx[0]), int(xx[1])
    y0, y1 = int(yy[0]), int(yy[1])
    if x0 == x1 == y0 == y1 == 0:
        return (FQ2([1, 0]), FQ2([1, 0]), FQ2([0, 0]))
    if any(not 0 <= c < _P for c in (x0, x1, y0, y1)):
        raise ValueError("G2 coordinate out of range")
    return (FQ2([x0, x1]), FQ2([y0, y1]), FQ2([1, 0]))


def is_on_curve_g1(P: G1Point) -> bool:
    """Return True if P is on G1 or is the point at infinity."""
    return bool(_is_on_curve(P, _B))


def is_on_curve_g2(Q: G2Point) -> bool:
    """Return True if Q is on the twist or is the point at infinity."""
    return bool(_is_on_curve(Q, _B2))


def in_subgroup_g2(Q: G2Point) -> bool:
    """The twist has a cofactor; r·Q must be infinity for Q to lie in G2."""
    return is_on_curve_g2(Q) and _is_inf(_multiply(Q, _Q))


def normalize_g1(P: G1Point) -> Optional[Tuple[int, int]]:
    """Affine (x, y) integers, or None for the point at infinity."""
    if _is_inf(P):
        return None
    ax, ay = _normalize(P)
    return int(ax.n), int(ay.n)


def normalize_g2(Q: G2Point) -> Optional[Tuple[Tuple[int, int], Tuple[int, int]]]:
    """Affine ((x_c0, x_c1), (y_c0, y_c1)) integers, or None for the point at infinity."""
    if _is_inf(Q):
        return None
    ax, ay = _normalize(Q)
    return (int(ax.coeffs[0]), int(ax.coeffs[1])), (int(ay.coeffs[0]), int(ay.coeffs[1]))


def g1_add(P: G1Point, Q: G1Point) -> G1Point:
    return _add(P, Q)


def g1_neg(P: G1Point) -> G1Point:
    return _neg(P)


def g1_mul(P: G1Point, k: int) -> G1Point:
    return _multiply(P, int(k) % _Q)


def g2_mul(Q: G2Point, k: int) -> G2Point:
    return _multiply(Q, int(k) % _Q)


# -------------------------
# Pairing
# -------------------------


def _miller(P: G1Point, Q: G2Point, validate: bool) -> GTElement:
    if validate:
        if not is_on_curve_g1(P):
            raise ValueError("G1 point is not on curve")
        if not is_on_curve_g2(Q):
            raise ValueError("G2 point is not on curve")
    if _is_inf(P) or _is_inf(Q):
        return FQ12.one()
    return _pairing(Q, P, final_exponentiate=False)


def pair(P: G1Point, Q: G2Point, *, validate: bool = True) -> GTElement:
    """
    Compute the Ate pairing e(P, Q) on BN254.

    Raises
    ------
    ValueError
        If inputs are not on the curve and validate=True.
    """
    return _final_exp(_miller(P, Q, validate))


def product_of_pairings(
    pairs: Iterable[Tuple[G1Point, G2Point]], *, validate: bool = True
) -> GTElement:
    """
    Compute ∏ e(P_i, Q_i) over an iterable of (P_i, Q_i).

    Returns an FQ12 element (GT). To check if the product is the identity, compare with FQ12.one().
    """
    acc = FQ12.one()
    for P, Q in pairs:
        acc = acc * _miller(P, Q, validate)
    return _final_exp(acc)


def check_pairing_product(
    pairs: Iterable[Tuple[G1Point, G2Point]], *, validate: bool = True
) -> bool:
    """Return True iff ∏ e(P_i, Q_i) == 1 in GT."""
    return product_of_pairings(pairs, validate=validate) == FQ12.one()


__all__ = [
    "G1Point",
    "G2Point",
    "GTElement",
    "BACKEND_NAME",
    "curve_order",
    "field_modulus",
    "g1_generator",
    "g2_generator",
    "g1_from_ints",
    "g2_from_ints",
    "is_on_curve_g1",
    "is_on_curve_g2",
    "in_subgroup_g2",
    "normalize_g1",
    "normalize_g2",
    "g1_add",
    "g1_neg",
    "g1_mul",
    "g2_mul",
    "pair",
    "product_of_pairings",
    "check_pairing_product",
]
