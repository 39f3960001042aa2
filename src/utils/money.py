# src/utils/money.py
# ===== Вспомогательные (квантизация денег) =====================================
# Ядро работает с фиксированными 2 знаками после запятой (минорная единица валюты).

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

MONEY_DECIMALS = 2
CENT = Decimal("0.01")


def _D(x) -> Decimal:
    if isinstance(x, Decimal):
        return x
    try:
        return Decimal(str(x))
    except InvalidOperation:
        raise ValueError(f"Not a number: {x!r}") from None


def _quant_for_decimals(decimals: int) -> Decimal:
    if decimals <= 0:
        return Decimal("1")
    return Decimal("1").scaleb(-decimals)


def q(x, decimals: int = MONEY_DECIMALS) -> Decimal:
    return _D(x).quantize(_quant_for_decimals(decimals), rounding=ROUND_HALF_UP)


def is_representable(x, decimals: int = MONEY_DECIMALS) -> bool:
    """True, если число конечное и не теряет точности при квантизации до decimals знаков."""
    d = _D(x)
    if not d.is_finite():
        return False
    return d == q(d, decimals)


def money_str(x) -> str:
    return str(q(x))
