from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine
from .config import settings
from .base import Base

engine = create_async_engine(settings.POSTGRES_DSN, pool_pre_ping=True)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

def load_models():
    # register every mapped table on Base.metadata
    from app.modules.bookings import models as _bookings  # noqa: F401
    from app.modules.appointments import models as _appointments  # noqa: F401
    from app.modules.waitlist import models as _waitlist  # noqa: F401

async def init_models(bind: AsyncEngine | None = None):
    ## In dev-only "create_all" mode, create tables; otherwise, migrations own the schema.
    if settings.DB_MANAGE.lower() == "create_all":
        load_models()
        async with (bind or engine).begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
