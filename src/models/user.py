# src/models/user.py

from sqlalchemy import Column, BigInteger, String, DateTime, func
from src.db import Base, new_key

class User(Base):
    """
    Пользователь. Создаётся коллаборатором регистрации (Telegram WebApp),
    ядро сплитов только читает эти записи.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_key)
    telegram_id = Column(BigInteger, unique=True, nullable=False, index=True)
    username = Column(String, index=True, nullable=True)
    name = Column(String, nullable=True)  # Отображаемое имя
    created_at = Column(DateTime, nullable=False, default=func.now())

    def __repr__(self):
        return f"<User(id={self.id}, telegram_id={self.telegram_id}, name={self.name})>"
