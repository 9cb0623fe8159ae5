from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from hangjegyzet.core.config import settings
from hangjegyzet.db.models import Base

# Use psycopg (v3) driver; URL may be postgresql:// from env
database_url = settings.DATABASE_URL
if database_url.startswith("postgresql://") and "+" not in database_url.split("?")[0]:
    database_url = database_url.replace("postgresql://", "postgresql+psycopg://", 1)

if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
    Path(database_url.removeprefix("sqlite:///")).parent.mkdir(parents=True, exist_ok=True)

connect_args = {} if "postgresql" in database_url else {"check_same_thread": False}
engine = create_engine(
    database_url,
    connect_args=connect_args,
    pool_pre_ping=True,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    Base.metadata.create_all(bind=engine)
