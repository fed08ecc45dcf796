"""
Database initialization script.

Run this script to create the references and screenshots tables.
"""
from references_database.db import engine
from references_database.models import Base


# PUBLIC_INTERFACE
def init_db(bind=None):
    """Initializes the database by creating all tables if they do not exist."""
    Base.metadata.create_all(bind=bind if bind is not None else engine)


def main():
    init_db()
    print("Database tables created successfully.")


if __name__ == "__main__":
    main()
