from __future__ import annotations

import logging
from typing import Generator, List

from fastapi import Request
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker, declarative_base, Session

logger = logging.getLogger("uvicorn.error")

Base = declarative_base()


class Database:
    """Engine and session factory for one application instance.

    Created by the application factory and closed by the lifespan hook.
    """

    def __init__(self, url: str):
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        self.url = url
        self.engine: Engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def session(self) -> Session:
        return self.SessionLocal()

    def init_schema(self) -> List[str]:
        """Create missing tables, then add columns missing from older databases."""
        # models must be imported so their tables are registered on Base.metadata
        from . import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        return upgrade_legacy_columns(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


# PUBLIC_INTERFACE
def upgrade_legacy_columns(engine: Engine) -> List[str]:
    """Run ALTER TABLE ... ADD COLUMN for every model column the live table lacks.

    Safe to call on every start: present columns are left alone and a failed
    ALTER is logged and skipped. Returns the list of "table.column" names added.
    """
    added: List[str] = []
    inspector = inspect(engine)
    for table in Base.metadata.sorted_tables:
        if not inspector.has_table(table.name):
            continue
        existing = {col["name"] for col in inspector.get_columns(table.name)}
        for column in table.columns:
            if column.name in existing:
                continue
            col_type = column.type.compile(dialect=engine.dialect)
            ddl = f'ALTER TABLE {table.name} ADD COLUMN "{column.name}" {col_type}'
            default = column.default.arg if column.default is not None and column.default.is_scalar else None
            if default is not None:
                if isinstance(default, bool):
                    default = int(default)
                ddl += f" DEFAULT {default!r}" if isinstance(default, str) else f" DEFAULT {default}"
            try:
                with engine.begin() as conn:
                    conn.execute(text(ddl))
                added.append(f"{table.name}.{column.name}")
                logger.info(f"Schema upgrade: added column {table.name}.{column.name}")
            except OperationalError as e:
                logger.warning(f"Schema upgrade skipped for {table.name}.{column.name}: {e}")
    return added


# PUBLIC_INTERFACE
def get_db(request: Request) -> Generator[Session, None, None]:
    """FastAPI dependency to provide a database session from the app's Database."""
    database: Database = request.app.state.database
    db = database.session()
    try:
        yield db
    finally:
        db.close()
