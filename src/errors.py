# src/errors.py
# -----------------------------------------------------------------------------
# ДОМЕННЫЕ ОШИБКИ ЯДРА СПЛИТОВ
# -----------------------------------------------------------------------------
# Таксономия:
#   • validation - плохие входные данные (исправляется вызывающим, не ретраится);
#   • reference  - ссылка на несуществующую сущность (юзер/категория/группа/сплит);
#   • authorization - вызывающий не вправе менять чужую группу (403).
# Роутеры их не ловят: main.py переводит LedgerError в HTTP-ответ
# вида {"detail": {"code", "kind", "message"}}.
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Optional


class LedgerError(Exception):
    code = "ledger_error"
    kind = "validation"
    status_code = 400

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.code
        super().__init__(self.message)

    def to_detail(self) -> dict:
        return {"code": self.code, "kind": self.kind, "message": self.message}


# --- validation --------------------------------------------------------------

class InvalidAmount(LedgerError):
    code = "invalid_amount"
    status_code = 422


class SplitMismatch(LedgerError):
    code = "split_mismatch"
    status_code = 422


class EmptyMemberSet(LedgerError):
    code = "empty_member_set"
    status_code = 422


class PayerNotMember(LedgerError):
    code = "payer_not_member"
    status_code = 422


# --- reference ---------------------------------------------------------------

class ReferenceNotFound(LedgerError):
    code = "reference_not_found"
    kind = "reference"
    status_code = 404


class NotFound(LedgerError):
    code = "not_found"
    kind = "reference"
    status_code = 404


# --- authorization -----------------------------------------------------------

class Forbidden(LedgerError):
    code = "forbidden"
    kind = "authorization"
    status_code = 403
