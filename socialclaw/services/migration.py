"""
Startup migration of legacy inline attachments.

Early versions stored attachments as base64 data URIs in ``messages.image_data``.
This module moves those payloads to files under the upload root and points the
row at the new file.
"""

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy.orm import Session

from socialclaw.db.repositories import add_syslog_entry, list_legacy_attachment_rows
from .storage import category_for, save_attachment

logger = logging.getLogger("uvicorn.error")

DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<payload>.*)$", re.DOTALL)


@dataclass
class MigrationReport:
    scanned: int = 0
    migrated: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def did_work(self) -> bool:
        return self.migrated > 0


# PUBLIC_INTERFACE
def parse_data_uri(value: str):
    """Split a base64 data URI into (mime_type, raw_bytes).

    Returns None when the value is not a base64 data URI.
    Raises binascii.Error when the payload is not valid base64.
    """
    match = DATA_URI_RE.match((value or "").strip())
    if not match:
        return None
    payload = re.sub(r"\s+", "", match.group("payload"))
    return match.group("mime").lower(), base64.b64decode(payload, validate=True)


# PUBLIC_INTERFACE
def migrate_legacy_attachments(db: Session, upload_root: Path) -> MigrationReport:
    """Convert every inline attachment without a file reference into a file.

    Rows already pointing at a file are never selected, so a second run does
    nothing. Rows that are not recognizable data URIs are counted as skipped and
    left untouched. A failure on one row is logged and the scan continues.
    """
    report = MigrationReport()
    for row in list_legacy_attachment_rows(db):
        report.scanned += 1
        try:
            parsed = parse_data_uri(row.image_data)
        except (binascii.Error, ValueError) as e:
            logger.warning(f"Legacy attachment on message {row.id} could not be decoded: {e}")
            report.failed += 1
            continue
        if parsed is None or category_for(parsed[0]) is None:
            report.skipped += 1
            continue
        mime_type, content = parsed
        try:
            public_path = save_attachment(upload_root, content, mime_type, prefix=f"legacy_{row.id}_")
        except OSError as e:
            logger.warning(f"Legacy attachment on message {row.id} could not be written: {e}")
            report.failed += 1
            continue
        row.file_path = public_path
        row.file_type = mime_type
        row.image_data = None
        db.commit()
        report.migrated += 1

    summary = (
        f"Legacy attachment migration: scanned={report.scanned} migrated={report.migrated} "
        f"skipped={report.skipped} failed={report.failed}"
    )
    if not (report.migrated or report.failed):
        # rows left as they were; nothing to record
        if report.scanned:
            logger.debug(summary)
        return report
    logger.info(summary)
    add_syslog_entry(db, "WARN" if report.failed else "INFO", summary)
    return report
