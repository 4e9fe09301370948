import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from socialclaw.db.database import Database
from socialclaw.db.repositories import add_syslog_entry, ensure_default_admin
from socialclaw.services.heartbeat import heartbeat_loop
from socialclaw.services.migration import migrate_legacy_attachments
from socialclaw.services.storage import ensure_dirs

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app) -> AsyncIterator[None]:
    """Prepare the store and upload directories, then run the heartbeat until shutdown."""
    settings = app.state.settings
    database: Database = app.state.database
    upload_root = Path(settings.UPLOAD_DIR)

    database.init_schema()
    ensure_dirs(upload_root)

    with database.session() as db:
        admin = ensure_default_admin(db, settings.DEFAULT_ADMIN_EMAIL, settings.DEFAULT_ADMIN_PASSWORD)
        if admin is not None:
            logger.info(f"Default Admin created: {admin.email}")
        if settings.RUN_LEGACY_MIGRATION:
            migrate_legacy_attachments(db, upload_root)
        add_syslog_entry(db, "INFO", f"{settings.APP_NAME} {settings.APP_VERSION} started")

    heartbeat = None
    if settings.HEARTBEAT_INTERVAL_SECONDS > 0:
        heartbeat = asyncio.create_task(heartbeat_loop(database, settings.HEARTBEAT_INTERVAL_SECONDS))
    try:
        yield
    finally:
        if heartbeat is not None:
            heartbeat.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await heartbeat
        database.dispose()
