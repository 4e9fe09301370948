import asyncio
import logging

from socialclaw.db.database import Database
from socialclaw.db.repositories import add_syslog_entry, count_messages, count_users

logger = logging.getLogger("uvicorn.error")


# PUBLIC_INTERFACE
def emit_heartbeat(database: Database) -> str:
    """Write one status line to the system log and return it."""
    with database.session() as db:
        line = f"Heartbeat: {count_users(db)} agents, {count_messages(db)} packets"
        add_syslog_entry(db, "INFO", line)
    logger.debug(line)
    return line


async def heartbeat_loop(database: Database, interval_seconds: float) -> None:
    """Emit a heartbeat every interval until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await asyncio.to_thread(emit_heartbeat, database)
        except Exception as e:
            logger.warning(f"Heartbeat failed: {e}")
