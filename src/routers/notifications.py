# src/routers/notifications.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from starlette import status

from src.deps import get_notification_store
from src.schemas.notification import NotificationOut
from src.services.notifications import NotificationStore
from src.utils.telegram_dep import get_current_user_id

router = APIRouter()


@router.get("/", response_model=List[NotificationOut])
def list_notifications(
    store: NotificationStore = Depends(get_notification_store),
    current_user_id: int = Depends(get_current_user_id),
):
    """Уведомления текущего пользователя, новые сверху. Источник истины для догонки после реконнекта."""
    return store.list_for_user(current_user_id)


@router.patch("/{notification_id}/read", response_model=NotificationOut)
def mark_notification_read(
    notification_id: int,
    store: NotificationStore = Depends(get_notification_store),
    current_user_id: int = Depends(get_current_user_id),
):
    notification = store.get(notification_id)
    if notification.user_id != current_user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your notification")
    return store.mark_read(notification_id)
