from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from ..config import settings


def engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    kwargs = {"pool_size": 10, "max_overflow": 20, "pool_recycle": 3600}
    if url.startswith("postgresql"):
        kwargs["connect_args"] = {"client_encoding": "utf8"}
    return kwargs


engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    echo=False,
    **engine_kwargs(settings.DATABASE_URL),
)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
