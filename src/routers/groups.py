# src/routers/groups.py
# -----------------------------------------------------------------------------
# РОУТЕР: Группы (только чтение)
# -----------------------------------------------------------------------------
# - GET /api/groups/                     → группы текущего пользователя
# - GET /api/groups/{group_id}/members   → stable id участников (только для участника)
# Создание групп и управление составом - вне ядра сплитов.
# -----------------------------------------------------------------------------
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from starlette import status

from src.deps import get_ledger
from src.schemas.group import GroupOut
from src.services.ledger import LedgerStore
from src.utils.telegram_dep import get_current_user_id

router = APIRouter()


@router.get("/", response_model=List[GroupOut])
def list_my_groups(
    ledger: LedgerStore = Depends(get_ledger),
    current_user_id: int = Depends(get_current_user_id),
):
    return ledger.list_groups_for_user(current_user_id)


@router.get("/{group_id}/members", response_model=List[int])
def get_group_members(
    group_id: int,
    ledger: LedgerStore = Depends(get_ledger),
    current_user_id: int = Depends(get_current_user_id),
):
    member_ids = ledger.get_group_member_ids(group_id)
    if current_user_id not in member_ids:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a member of this group")
    return member_ids
