from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from caltrack.core.config import settings

# SQLite necesita check_same_thread=False para usarse desde FastAPI
connect_args = (
    {"check_same_thread": False}
    if settings.DATABASE_URL.startswith("sqlite")
    else {}
)

engine = create_engine(
    settings.DATABASE_URL,
    future=True,
    connect_args=connect_args,
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

def get_db() -> Generator[Session, None, None]:
    """
    Dependencia para FastAPI.
    Crea una sesión por petición y la cierra al final.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
