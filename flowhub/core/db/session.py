from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from flowhub.core.config_file import get_settings

settings = get_settings()


def _engine_kwargs(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
        "connect_args": {"connect_timeout": 10, "options": "-c timezone=utc"},
    }


engine = create_engine(
    settings.database_url,
    echo=settings.DEBUG,
    future=True,
    **_engine_kwargs(settings.database_url),
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()
