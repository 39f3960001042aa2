# src/utils/telegram_dep.py
"""
Адаптер коллаборатора авторизации: Telegram WebApp initData -> текущий пользователь.
- get_current_user_id: FastAPI-зависимость; валидирует initData, находит
  зарегистрированного пользователя и отдаёт его stable id.
Регистрация пользователей и синхронизация профиля сюда не входят.
"""

import os
from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from src.db import get_db
from src.deps import get_identity_map
from src.models.user import User
from src.services.identity import IdentityMap
from telegram_webapp_auth.auth import TelegramAuthenticator, generate_secret_key


@lru_cache(maxsize=1)
def _authenticator() -> TelegramAuthenticator:
    token = os.environ.get("TELEGRAM_BOT_TOKEN")
    if not token:
        raise RuntimeError("TELEGRAM_BOT_TOKEN is not set")
    return TelegramAuthenticator(generate_secret_key(token))


def _get_init_data_from_request(request: Request, body: Optional[dict]) -> Optional[str]:
    """
    Пытаемся достать initData:
      - из JSON body (ключ 'initData')
      - из заголовка 'x-telegram-initdata'
      - из query (?init_data=...)
    """
    if body and isinstance(body, dict):
        v = body.get("initData")
        if isinstance(v, str) and v.strip():
            return v

    header_v = request.headers.get("x-telegram-initdata")
    if header_v:
        return header_v

    q = request.query_params.get("init_data")
    if q:
        return q

    return None


def resolve_user(init_data: str, db: Session) -> User:
    if not init_data:
        raise HTTPException(status_code=401, detail="initData is required")

    try:
        result = _authenticator().validate(init_data)
    except RuntimeError:
        raise
    except Exception as e:
        raise HTTPException(status_code=401, detail=f"Auth error: {str(e)}")

    user: Optional[User] = db.query(User).filter_by(telegram_id=result.user.id).first()
    if not user:
        raise HTTPException(status_code=401, detail="User is not registered")
    return user


async def get_current_user_id(
    request: Request,
    db: Session = Depends(get_db),
    ids: IdentityMap = Depends(get_identity_map),
) -> int:
    """
    Зависимость для защищённых ручек:
    - достаёт initData из запроса
    - валидирует подпись
    - возвращает stable id существующего пользователя
    """
    body = None
    if request.method in {"POST", "PUT", "PATCH"}:
        try:
            body = await request.json()
        except Exception:
            body = None

    init_data = _get_init_data_from_request(request, body)
    if not init_data:
        raise HTTPException(
            status_code=401,
            detail="initData required (JSON 'initData', header 'x-telegram-initdata' or '?init_data=...')",
        )

    return ids.to_stable_id(resolve_user(init_data, db).id)
