"""Tests for the legacy inline-attachment migration."""

import base64

from socialclaw.db.models import MessageModel
from socialclaw.db.repositories import create_user, list_syslog
from socialclaw.services.migration import migrate_legacy_attachments, parse_data_uri
from socialclaw.services.storage import disk_path

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + bytes(range(64))
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"jpeg-body" * 10


def data_uri(mime: str, payload: bytes) -> str:
    return f"data:{mime};base64,{base64.b64encode(payload).decode('ascii')}"


def add_legacy_row(db, user_id: int, image_data, file_path=None) -> MessageModel:
    row = MessageModel(user_id=user_id, content="legacy", image_data=image_data, file_path=file_path)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def make_user(db):
    return create_user(db, email="legacy@agents.net", password="pw", first_name="Old", last_name="Bot")


def test_parse_data_uri():
    assert parse_data_uri(data_uri("image/png", PNG_BYTES)) == ("image/png", PNG_BYTES)
    assert parse_data_uri("https://example.org/cat.png") is None
    assert parse_data_uri("") is None


def test_png_row_is_written_to_disk(db, tmp_path):
    user = make_user(db)
    row = add_legacy_row(db, user.id, data_uri("image/png", PNG_BYTES))
    upload_root = tmp_path / "uploads"

    report = migrate_legacy_attachments(db, upload_root)

    assert report.migrated == 1
    db.refresh(row)
    assert row.file_path.startswith("/uploads/images/")
    assert row.file_path.endswith(".png")
    assert row.file_type == "image/png"
    assert row.image_data is None
    path = disk_path(upload_root, row.file_path)
    assert path.parent == (upload_root / "images").resolve()
    assert path.read_bytes() == PNG_BYTES


def test_jpeg_row_lands_in_image_directory(db, tmp_path):
    user = make_user(db)
    row = add_legacy_row(db, user.id, data_uri("image/jpeg", JPEG_BYTES), file_path="")
    upload_root = tmp_path / "uploads"

    migrate_legacy_attachments(db, upload_root)

    db.refresh(row)
    assert row.file_path
    path = disk_path(upload_root, row.file_path)
    assert path.parent.name == "images"
    assert path.read_bytes() == JPEG_BYTES


def test_audio_and_video_are_classified(db, tmp_path):
    user = make_user(db)
    audio = add_legacy_row(db, user.id, data_uri("audio/mpeg", b"ID3audio"))
    video = add_legacy_row(db, user.id, data_uri("video/mp4", b"\x00\x00\x00\x18ftypmp42"))

    migrate_legacy_attachments(db, tmp_path)

    db.refresh(audio)
    db.refresh(video)
    assert audio.file_path.startswith("/uploads/audio/")
    assert video.file_path.startswith("/uploads/video/")


def test_second_run_does_nothing(db, tmp_path):
    user = make_user(db)
    add_legacy_row(db, user.id, data_uri("image/png", PNG_BYTES))
    first = migrate_legacy_attachments(db, tmp_path)
    files_after_first = sorted(p.name for p in (tmp_path / "images").iterdir())

    second = migrate_legacy_attachments(db, tmp_path)

    assert first.migrated == 1
    assert second.scanned == 0
    assert second.migrated == 0
    assert not second.did_work
    assert sorted(p.name for p in (tmp_path / "images").iterdir()) == files_after_first


def test_rows_with_file_reference_are_untouched(db, tmp_path):
    user = make_user(db)
    row = add_legacy_row(db, user.id, data_uri("image/png", PNG_BYTES), file_path="/uploads/images/existing.png")

    report = migrate_legacy_attachments(db, tmp_path)

    assert report.scanned == 0
    db.refresh(row)
    assert row.file_path == "/uploads/images/existing.png"
    assert row.image_data is not None


def test_unrecognized_payload_is_skipped(db, tmp_path):
    user = make_user(db)
    row = add_legacy_row(db, user.id, "not a data uri")
    pdf = add_legacy_row(db, user.id, data_uri("application/pdf", b"%PDF-1.4"))

    report = migrate_legacy_attachments(db, tmp_path)

    assert report.scanned == 2
    assert report.skipped == 2
    assert report.migrated == 0
    db.refresh(row)
    db.refresh(pdf)
    assert row.file_path is None and row.image_data == "not a data uri"
    assert pdf.file_path is None


def test_bad_base64_does_not_abort_batch(db, tmp_path):
    user = make_user(db)
    broken = add_legacy_row(db, user.id, "data:image/png;base64,@@@not-base64@@@")
    good = add_legacy_row(db, user.id, data_uri("image/png", PNG_BYTES))

    report = migrate_legacy_attachments(db, tmp_path)

    assert report.failed == 1
    assert report.migrated == 1
    db.refresh(broken)
    db.refresh(good)
    assert broken.file_path is None
    assert good.file_path.startswith("/uploads/images/")
    assert any("failed=1" in entry.text for entry in list_syslog(db))


def test_write_error_is_logged_and_skipped(db, tmp_path):
    user = make_user(db)
    row = add_legacy_row(db, user.id, data_uri("image/png", PNG_BYTES))
    # a regular file where the images directory should be makes the write fail
    (tmp_path / "images").write_text("in the way")

    report = migrate_legacy_attachments(db, tmp_path)

    assert report.failed == 1
    db.refresh(row)
    assert row.file_path is None
    assert row.image_data is not None


def test_migration_runs_at_startup(settings, tmp_path):
    from fastapi.testclient import TestClient

    from socialclaw.api.main import create_app
    from socialclaw.db.database import Database

    database = Database(settings.DATABASE_URL)
    database.init_schema()
    with database.session() as session:
        user = make_user(session)
        row_id = add_legacy_row(session, user.id, data_uri("image/png", PNG_BYTES)).id
    database.dispose()

    app = create_app(settings)
    with TestClient(app):
        pass

    database = Database(settings.DATABASE_URL)
    with database.session() as session:
        row = session.get(MessageModel, row_id)
        assert row.file_path.startswith("/uploads/images/")
        assert disk_path(settings.UPLOAD_DIR, row.file_path).read_bytes() == PNG_BYTES
    database.dispose()


def test_unrecognized_rows_do_not_add_log_entries_on_restart(db, tmp_path):
    user = make_user(db)
    add_legacy_row(db, user.id, data_uri("application/pdf", b"%PDF-1.4"))

    first = migrate_legacy_attachments(db, tmp_path)
    second = migrate_legacy_attachments(db, tmp_path)

    assert first.skipped == second.skipped == 1
    assert not second.did_work
    assert list_syslog(db) == []
