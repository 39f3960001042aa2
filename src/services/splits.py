# src/services/splits.py
# -----------------------------------------------------------------------------
# ДВИЖОК ДЕЛЕНИЯ РАСХОДА
# -----------------------------------------------------------------------------
# Политики:
#   • equal  - сумма / N (N включает плательщика), округление ROUND_HALF_UP до 0.01.
#              Остаток (amount - per * N, целое число центов, бывает отрицательным)
#              раздаём по одному центу должникам в порядке возрастания stable id.
#              Доля плательщика всегда равна per и в результат не попадает.
#   • custom - суммы задаёт клиент; мы только проверяем:
#              a) все суммы >= 0 и не больше 2 знаков;
#              b) ненулевые суммы - только у участников группы;
#              c) |сумма - amount| <= 0.01.
#              Собственная доля плательщика строкой сплита не становится.
# Результат: одна запись на должника, отсортировано по stable id.
# Ошибки бросаются ДО любой записи в хранилище.
# -----------------------------------------------------------------------------

from __future__ import annotations

import enum
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from src.errors import EmptyMemberSet, InvalidAmount, PayerNotMember, SplitMismatch
from src.utils.money import CENT, _D, is_representable, q

CUSTOM_TOLERANCE = Decimal("0.01")


class SplitPolicy(str, enum.Enum):
    equal = "equal"
    custom = "custom"


@dataclass(frozen=True)
class SplitShare:
    user_id: int
    amount: Decimal


def validate_amount(expense_amount) -> Decimal:
    try:
        amount = _D(expense_amount)
    except ValueError:
        raise InvalidAmount(f"Amount {expense_amount!r} is not a number") from None
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmount(f"Amount must be positive, got {expense_amount}")
    if not is_representable(amount):
        raise InvalidAmount(f"Amount {amount} has more than 2 fractional digits")
    return q(amount)


def _equal_split(amount: Decimal, payer: int, members: List[int]) -> List[SplitShare]:
    owing = [uid for uid in members if uid != payer]
    if not owing:
        raise EmptyMemberSet("Nobody except the payer is in the group")

    n = len(members)
    per = (amount / n).quantize(CENT, rounding=ROUND_HALF_UP)
    remainder_cents = int((amount - per * n) / CENT)

    step = CENT if remainder_cents > 0 else -CENT
    result = []
    for i, uid in enumerate(owing):
        share = per + step if i < abs(remainder_cents) else per
        result.append(SplitShare(user_id=uid, amount=share))
    return result


def _aggregate_custom(custom_amounts: Iterable[Tuple[int, object]]) -> Dict[int, Decimal]:
    """Склеивает повторяющиеся строки одного участника (как при создании транзакций)."""
    aggregated: Dict[int, Decimal] = OrderedDict()
    for uid, raw in custom_amounts:
        try:
            value = _D(raw)
        except ValueError:
            raise SplitMismatch(f"Amount for user {uid} is not a number") from None
        if not value.is_finite() or value < 0:
            raise SplitMismatch(f"Amount for user {uid} must be non-negative")
        if not is_representable(value):
            raise SplitMismatch(f"Amount for user {uid} has more than 2 fractional digits")
        aggregated[uid] = aggregated.get(uid, Decimal("0")) + q(value)
    return aggregated


def _custom_split(
    amount: Decimal,
    payer: int,
    members: List[int],
    custom_amounts: Optional[Iterable[Tuple[int, object]]],
) -> List[SplitShare]:
    if not custom_amounts:
        raise SplitMismatch("Custom split requires per-member amounts")

    aggregated = _aggregate_custom(custom_amounts)

    member_set = set(members)
    outsiders = sorted(uid for uid, v in aggregated.items() if v != 0 and uid not in member_set)
    if outsiders:
        raise SplitMismatch(f"Users {outsiders} are not members of the group")

    total = sum(aggregated.values(), Decimal("0"))
    if (total - amount).copy_abs() > CUSTOM_TOLERANCE:
        raise SplitMismatch(f"Sum of shares ({total}) must equal expense amount ({amount})")

    result = [
        SplitShare(user_id=uid, amount=v)
        for uid, v in sorted(aggregated.items())
        if uid != payer and v != 0
    ]
    if not result:
        raise EmptyMemberSet("Custom split leaves nothing owed by other members")
    return result


def compute_splits(
    expense_amount,
    payer: int,
    member_ids: Sequence[int],
    policy: SplitPolicy = SplitPolicy.equal,
    custom_amounts: Optional[Iterable[Tuple[int, object]]] = None,
) -> List[SplitShare]:
    """
    Считает, сколько каждый участник (кроме плательщика) должен плательщику.

    member_ids - stable id текущих участников группы (плательщик обязан там быть).
    custom_amounts - пары (user_id, amount), только для policy=custom.
    """
    amount = validate_amount(expense_amount)

    members = sorted(set(member_ids))
    if not members:
        raise EmptyMemberSet("Group has no members")
    if payer not in members:
        raise PayerNotMember(f"Payer {payer} is not a member of the group")

    policy = SplitPolicy(policy)
    if policy is SplitPolicy.equal:
        return _equal_split(amount, payer, members)
    return _custom_split(amount, payer, members, custom_amounts)
