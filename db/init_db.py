"""Create all database tables from ORM models."""

import sys

from sqlalchemy import Engine

from db.models import Base
from db.session import create_engine_for


def init_db(engine: Engine) -> None:
    """Create missing tables. Existing tables and rows are left untouched."""
    Base.metadata.create_all(bind=engine)


if __name__ == "__main__":
    if len(sys.argv) != 2:
        sys.exit("usage: python -m db.init_db DATABASE_URL")
    init_db(create_engine_for(sys.argv[1]))
    print("DB schema created")
