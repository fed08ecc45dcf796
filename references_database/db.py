import os

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


# PUBLIC_INTERFACE
def get_database_url():
    """
    Retrieves the database URL from the environment variable DATABASE_URL.
    """
    load_dotenv()
    db_url = os.getenv("DATABASE_URL")
    if not db_url:
        raise ValueError("DATABASE_URL environment variable not set.")
    return db_url


def sql_echo_enabled():
    return os.getenv("SQL_ECHO", "").strip().lower() in ("1", "true", "yes")


# PUBLIC_INTERFACE
def build_engine(db_url, echo=False):
    """Creates an engine; SQLite connections may be shared across threads."""
    connect_args = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(db_url, future=True, echo=echo, connect_args=connect_args)


DATABASE_URL = get_database_url()

engine = build_engine(DATABASE_URL, echo=sql_echo_enabled())
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
