from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select

from salon_pos.config import settings
from salon_pos.core.database import engine, Base, async_session_maker
from salon_pos.core.logging_config import setup_logging, get_logger
from salon_pos.models import Employee
from salon_pos.models.employee import EmployeeRole
from salon_pos.api.auth import router as auth_router
from salon_pos.api.branches import router as branches_router
from salon_pos.api.employees import router as employees_router
from salon_pos.api.shifts import router as shifts_router
from salon_pos.api.cash_cuts import router as cash_cuts_router
from salon_pos.api.sales import router as sales_router
from salon_pos.api.expenses import router as expenses_router
from salon_pos.api.purchases import router as purchases_router
from salon_pos.api.appointments import router as appointments_router
from salon_pos.services.auth_service import hash_password

setup_logging()
logger = get_logger(__name__)


async def ensure_superuser():
    """Создать администратора из настроек, если такого логина ещё нет."""
    async with async_session_maker() as session:
        r = await session.execute(select(Employee).where(Employee.login == settings.superuser_login))
        if r.scalar_one_or_none() is not None:
            return
        emp = Employee(
            name=settings.superuser_name,
            role=EmployeeRole.ROLE_ADMIN,
            login=settings.superuser_login,
            password_hash=hash_password(settings.superuser_password),
            branch_id=None,
            is_active=True,
        )
        session.add(emp)
        await session.commit()
        logger.info("Создан суперпользователь: %s", settings.superuser_login)


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Таблицы БД проверены/созданы")
    try:
        await ensure_superuser()
    except Exception as e:
        logger.warning("Суперпользователь: %s", e)
    yield
    await engine.dispose()


app = FastAPI(title="Salon POS", version="1.0.0", lifespan=lifespan)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Необработанная ошибка: %s", exc)
    detail = "Error interno del servidor"
    err_str = str(exc).lower()
    if "duplicate key" in err_str or "unique constraint" in err_str:
        detail = "Conflicto de datos (duplicado). Actualiza la página e inténtalo de nuevo."
    elif "foreign key" in err_str:
        detail = "Referencia inválida (sucursal, empleado o cita inexistente)."
    return JSONResponse(
        status_code=500,
        content={"detail": detail},
    )


origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(auth_router)
app.include_router(branches_router)
app.include_router(employees_router)
app.include_router(shifts_router)
app.include_router(cash_cuts_router)
app.include_router(sales_router)
app.include_router(expenses_router)
app.include_router(purchases_router)
app.include_router(appointments_router)


@app.get("/health")
def health():
    return {"status": "ok"}
