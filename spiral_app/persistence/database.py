# spiral_app/persistence/database.py

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from spiral_app.config.settings import settings

SQLALCHEMY_DATABASE_URL = settings.db_connection_string

connect_args = {}
if SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    # FastAPI serves requests from a threadpool
    connect_args = {"check_same_thread": False}

engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
