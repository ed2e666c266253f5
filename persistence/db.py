from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./travel_agent.db")

# For SQLite, check_same_thread=False is required for multithreaded web servers
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()

def init_db(bind=None):
    # Import models here so they get registered with Base before creating tables
    import persistence.models  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)
