from __future__ import annotations

import hashlib
import logging
import mimetypes
import secrets
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Iterator

from sqlalchemy.orm import Session

from syllabus_app.config import settings
from syllabus_app.core.time_provider import TimeProvider, default_time_provider, naive_utc
from syllabus_app.models import StoredFile
from syllabus_app.services.access_service import get_context, get_or_create_user_context


DRAFT_COMPONENT = 'user'
DRAFT_AREA = 'draft'
_CHUNK_SIZE = 64 * 1024

logger = logging.getLogger(__name__)


class FileStorageError(RuntimeError):
    pass


@dataclass
class FileStreamPayload:
    chunks: Iterator[bytes]
    mime_type: str
    file_size: int
    filename: str


def _storage_root() -> Path:
    return Path(settings.file_storage_dir)


def _blob_path(content_hash: str) -> Path:
    return _storage_root() / content_hash[:2] / content_hash[2:4] / content_hash


def _write_blob(content: bytes) -> str:
    content_hash = hashlib.sha1(content).hexdigest()
    path = _blob_path(content_hash)
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix('.tmp')
        tmp_path.write_bytes(content)
        tmp_path.replace(path)
    return content_hash


def _drop_blob_if_orphaned(db: Session, content_hash: str) -> None:
    still_used = db.query(StoredFile.id).filter(StoredFile.content_hash == content_hash).first()
    if still_used:
        return
    _blob_path(content_hash).unlink(missing_ok=True)


def _clean_filename(filename: str) -> str:
    name = Path((filename or '').replace('\\', '/')).name.strip()
    return name or 'file'


def guess_mimetype(filename: str) -> str:
    guessed, _ = mimetypes.guess_type(filename or '')
    return guessed or 'application/octet-stream'


def get_area_files(
    db: Session,
    context_id: int,
    component: str,
    area: str,
    item_id: int | None = None,
) -> list[StoredFile]:
    query = db.query(StoredFile).filter(
        StoredFile.context_id == int(context_id),
        StoredFile.component == component,
        StoredFile.area == area,
    )
    if item_id is not None:
        query = query.filter(StoredFile.item_id == int(item_id))
    return query.order_by(StoredFile.item_id.asc(), StoredFile.filepath.asc(), StoredFile.filename.asc(), StoredFile.id.asc()).all()


def get_file_by_path(
    db: Session,
    *,
    context_id: int,
    component: str,
    area: str,
    item_id: int,
    filepath: str,
    filename: str,
) -> StoredFile | None:
    return (
        db.query(StoredFile)
        .filter(
            StoredFile.context_id == int(context_id),
            StoredFile.component == component,
            StoredFile.area == area,
            StoredFile.item_id == int(item_id),
            StoredFile.filepath == filepath,
            StoredFile.filename == filename,
        )
        .first()
    )


def delete_stored_file(db: Session, stored_file: StoredFile) -> None:
    content_hash = stored_file.content_hash
    db.delete(stored_file)
    db.flush()
    _drop_blob_if_orphaned(db, content_hash)


def delete_area_files(
    db: Session,
    context_id: int,
    component: str,
    area: str,
    item_id: int | None = None,
) -> int:
    files = get_area_files(db, context_id, component, area, item_id)
    for stored_file in files:
        delete_stored_file(db, stored_file)
    return len(files)


def read_file_content(stored_file: StoredFile) -> bytes:
    path = _blob_path(stored_file.content_hash)
    try:
        return path.read_bytes()
    except OSError as exc:
        raise FileStorageError(f'Stored file content missing for file {stored_file.id}') from exc


def stream_file(stored_file: StoredFile) -> FileStreamPayload:
    path = _blob_path(stored_file.content_hash)
    if not path.exists():
        raise FileStorageError(f'Stored file content missing for file {stored_file.id}')

    def iterator() -> Iterator[bytes]:
        with path.open('rb') as handle:
            while True:
                chunk = handle.read(_CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk

    return FileStreamPayload(
        chunks=iterator(),
        mime_type=stored_file.mimetype or 'application/octet-stream',
        file_size=int(stored_file.filesize or 0),
        filename=stored_file.filename,
    )


def _new_draft_item_id(db: Session, context_id: int) -> int:
    while True:
        candidate = secrets.randbelow(999_999_999) + 1
        taken = (
            db.query(StoredFile.id)
            .filter(
                StoredFile.context_id == context_id,
                StoredFile.component == DRAFT_COMPONENT,
                StoredFile.area == DRAFT_AREA,
                StoredFile.item_id == candidate,
            )
            .first()
        )
        if not taken:
            return candidate


def save_draft_file(
    db: Session,
    *,
    user_id: int,
    filename: str,
    content: bytes,
    mimetype: str | None = None,
    draft_item_id: int | None = None,
) -> StoredFile:
    if int(user_id or 0) <= 0:
        raise FileStorageError('Only signed-in users can upload files')
    if not content:
        raise FileStorageError('Cannot upload empty file')

    user_context = get_or_create_user_context(db, user_id)
    clean_name = _clean_filename(filename)
    item_id = int(draft_item_id or 0) or _new_draft_item_id(db, user_context.id)

    existing = get_file_by_path(
        db,
        context_id=user_context.id,
        component=DRAFT_COMPONENT,
        area=DRAFT_AREA,
        item_id=item_id,
        filepath='/',
        filename=clean_name,
    )
    if existing:
        delete_stored_file(db, existing)

    row = StoredFile(
        context_id=user_context.id,
        component=DRAFT_COMPONENT,
        area=DRAFT_AREA,
        item_id=item_id,
        filepath='/',
        filename=clean_name,
        mimetype=mimetype or guess_mimetype(clean_name),
        filesize=len(content),
        content_hash=_write_blob(content),
        author_id=int(user_id),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info('draft_file_saved user_id=%s draft_item_id=%s filename=%s size=%s', user_id, item_id, clean_name, len(content))
    return row


def _select_draft_files(draft_files: list[StoredFile], config: dict) -> list[StoredFile]:
    max_bytes = int(config.get('maxbytes') or 0)
    max_files = int(config.get('maxfiles') or 0)
    selected = []
    for draft in draft_files:
        if max_bytes > 0 and int(draft.filesize or 0) > max_bytes:
            logger.warning(
                'draft_file_too_large filename=%s size=%s maxbytes=%s',
                draft.filename,
                draft.filesize,
                max_bytes,
            )
            continue
        selected.append(draft)
    if max_files > 0 and len(selected) > max_files:
        logger.warning('draft_area_over_limit count=%s maxfiles=%s', len(selected), max_files)
        selected = selected[:max_files]
    return selected


def commit_draft_area(
    db: Session,
    *,
    draft_item_id: int,
    user_id: int,
    context_id: int,
    component: str,
    area: str,
    item_id: int,
    config: dict,
) -> list[StoredFile]:
    """Replace the files of a target area with the contents of a draft area.

    The draft must belong to ``user_id``. Files over ``maxbytes`` are skipped,
    anything past ``maxfiles`` is dropped, and with ``subdirs`` disabled every
    file lands in the area root. The draft area is emptied afterwards.
    """
    user_context = get_or_create_user_context(db, user_id)
    draft_files = get_area_files(db, user_context.id, DRAFT_COMPONENT, DRAFT_AREA, draft_item_id)
    if not draft_files:
        owner = (
            db.query(StoredFile.author_id)
            .filter(
                StoredFile.component == DRAFT_COMPONENT,
                StoredFile.area == DRAFT_AREA,
                StoredFile.item_id == int(draft_item_id),
            )
            .first()
        )
        if owner:
            raise FileStorageError('Draft area does not belong to the current user')

    target_context = get_context(db, context_id)
    if target_context is None:
        raise FileStorageError(f'Unknown context {context_id}')

    selected = _select_draft_files(draft_files, config)
    allow_subdirs = bool(config.get('subdirs'))

    delete_area_files(db, context_id, component, area, item_id)
    committed = []
    for draft in selected:
        row = StoredFile(
            context_id=int(context_id),
            component=component,
            area=area,
            item_id=int(item_id),
            filepath=draft.filepath if allow_subdirs else '/',
            filename=draft.filename,
            mimetype=draft.mimetype,
            filesize=draft.filesize,
            content_hash=draft.content_hash,
            author_id=draft.author_id,
        )
        db.add(row)
        committed.append(row)
    db.flush()

    for draft in draft_files:
        delete_stored_file(db, draft)
    db.commit()
    logger.info(
        'draft_area_committed draft_item_id=%s context_id=%s component=%s area=%s item_id=%s files=%s',
        draft_item_id,
        context_id,
        component,
        area,
        item_id,
        len(committed),
    )
    return committed



def purge_stale_drafts(db: Session, *, time_provider: TimeProvider = default_time_provider) -> int:
    ttl_hours = int(settings.draft_ttl_hours or 0)
    if ttl_hours <= 0:
        return 0
    cutoff = naive_utc(time_provider.now()) - timedelta(hours=ttl_hours)
    stale = (
        db.query(StoredFile)
        .filter(
            StoredFile.component == DRAFT_COMPONENT,
            StoredFile.area == DRAFT_AREA,
            StoredFile.created_at < cutoff,
        )
        .all()
    )
    for stored_file in stale:
        delete_stored_file(db, stored_file)
    db.commit()
    if stale:
        logger.info('stale_drafts_purged count=%s cutoff=%s', len(stale), cutoff.isoformat())
    return len(stale)
