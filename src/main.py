# src/main.py
# Главная точка входа FastAPI для Split Ledger.
#  • /api/expenses, /api/splits, /api/notifications - ядро деления расходов
#  • /api/groups, /api/expense-categories - справочники для создания расхода
#  • /ws - real-time события (expense_added / payment_settled)
#  • Фоновое напоминание о долгах - по флагу (ENV: PAYMENT_REMINDERS_ENABLED=1)

from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dotenv import load_dotenv
load_dotenv()

from src.errors import LedgerError
from src.jobs.payment_reminders import start_payment_reminder_loop
from src.routers.events import router as events_router
from src.routers.expense_categories import router as expense_categories_router
from src.routers.expenses import router as expenses_router
from src.routers.groups import router as groups_router
from src.routers.notifications import router as notifications_router
from src.routers.splits import router as splits_router
from src.services.broadcast import BroadcastHub
from src.services.identity import IdentityMap

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS")
    if not raw:
        return DEFAULT_CORS_ORIGINS
    return [o.strip() for o in raw.split(",") if o.strip()]


async def _ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    log.info("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


def create_app() -> FastAPI:
    app = FastAPI(
        title="Split Ledger",
        description="Групповые расходы: деление на участников, погашение долгов, уведомления в реальном времени.",
    )

    # по одному на процесс
    app.state.identity_map = IdentityMap()
    app.state.hub = BroadcastHub()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(LedgerError, _ledger_error_handler)

    app.include_router(expenses_router,      prefix="/api/expenses",      tags=["Расходы"])
    app.include_router(splits_router,        prefix="/api/splits",        tags=["Сплиты"])
    app.include_router(notifications_router, prefix="/api/notifications", tags=["Уведомления"])
    app.include_router(groups_router,        prefix="/api/groups",        tags=["Группы"])
    app.include_router(expense_categories_router, prefix="/api/expense-categories", tags=["Категории расходов"])
    app.include_router(events_router,                                      tags=["События"])

    @app.get("/")
    def root():
        """Простой healthcheck."""
        return {"message": "Split Ledger работает!", "docs": "/docs"}

    @app.on_event("startup")
    def _startup_jobs():
        if os.getenv("PAYMENT_REMINDERS_ENABLED") == "1":
            start_payment_reminder_loop(app.state.identity_map, app.state.hub)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("src.main:app", host="0.0.0.0", port=8000, reload=False)
