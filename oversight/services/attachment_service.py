"""
Donor Oversight Platform
Attachment Service — upload, list, download, soft delete.

Files are stored under ``attachments/YYYY/MM/<uuid><ext>`` through the
configured storage backend.  New uploads are recorded with
``virus_scan_status = "Pending"``; downloads of ``Infected`` files are
refused.  Soft delete keeps the stored object.
"""

import logging
import mimetypes
import os
import uuid
from datetime import datetime, timezone

from flask import current_app
from werkzeug.utils import secure_filename

from oversight.constants import ALLOWED_ATTACHMENT_EXTENSIONS, MAX_ATTACHMENT_BYTES
from oversight.core.exceptions import NotFoundError, ValidationError
from oversight.models import db
from oversight.models.actual import Attachment
from oversight.models.audit import write_audit
from oversight.services.actual_service import get_actual
from oversight.services.storage import PRESIGNED_URL_EXPIRES, storage_from_config

logger = logging.getLogger(__name__)


def get_storage():
    return storage_from_config(current_app.config)


def build_storage_key(extension: str, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"attachments/{now:%Y}/{now:%m}/{uuid.uuid4().hex}{extension}"


def get_attachment(attachment_id: int) -> Attachment:
    attachment = Attachment.get_active(attachment_id)
    if attachment is None:
        raise NotFoundError(resource="Attachment", resource_id=attachment_id)
    return attachment


def list_attachments(actual_id: int) -> list[Attachment]:
    get_actual(actual_id)
    return (
        Attachment.query_active()
        .filter(Attachment.actual_id == actual_id)
        .order_by(Attachment.uploaded_at.desc(), Attachment.id.desc())
        .all()
    )


def upload_attachment(actual_id: int, file_storage, user) -> Attachment:
    """Validate and store an uploaded ``werkzeug.FileStorage``."""
    actual = get_actual(actual_id)

    original_name = (file_storage.filename or "").strip()
    if not original_name:
        raise ValidationError("A file is required", details={"file": "required"})
    extension = os.path.splitext(original_name)[1].lower()
    if extension not in ALLOWED_ATTACHMENT_EXTENSIONS:
        raise ValidationError(
            f"File type {extension or '(none)'} is not allowed",
            details={"file": f"allowed: {', '.join(sorted(ALLOWED_ATTACHMENT_EXTENSIONS))}"},
        )

    data = file_storage.read()
    if not data:
        raise ValidationError("File is empty", details={"file": "empty"})
    if len(data) > MAX_ATTACHMENT_BYTES:
        raise ValidationError("File exceeds the 50 MB limit", details={"file": "too large"})

    mime_type = (
        file_storage.mimetype
        or mimetypes.guess_type(original_name)[0]
        or "application/octet-stream"
    )
    key = build_storage_key(extension)
    get_storage().put_bytes(key, data, content_type=mime_type)

    attachment = Attachment(
        actual_id=actual.id,
        file_name=key.rsplit("/", 1)[-1],
        original_file_name=secure_filename(original_name) or f"attachment{extension}",
        file_size=len(data),
        mime_type=mime_type,
        storage_key=key,
        virus_scan_status="Pending",
        uploaded_by_id=user.id,
    )
    db.session.add(attachment)
    db.session.flush()
    write_audit(action="Create", object_type="Attachment", object_id=attachment.id,
                new_values={"actual_id": actual.id, "original_file_name": attachment.original_file_name,
                            "file_size": attachment.file_size, "storage_key": key})
    db.session.commit()
    logger.info("Attachment stored: %s (%d bytes)", key, len(data), extra={"user_id": user.id})
    return attachment


def prepare_download(attachment_id: int) -> dict:
    """
    Resolve how to serve an attachment.

    Returns ``{"url": ..., "expires_in": 3600}`` for presigning backends,
    otherwise ``{"stream": <file>, "attachment": Attachment}``.
    """
    attachment = get_attachment(attachment_id)
    get_actual(attachment.actual_id)
    if attachment.virus_scan_status == "Infected":
        raise ValidationError("File is infected and cannot be downloaded",
                              details={"virus_scan_status": "Infected"})

    storage = get_storage()
    if storage.supports_presigned_urls:
        url = storage.presigned_url(attachment.storage_key,
                                    filename=attachment.original_file_name,
                                    expires_in=PRESIGNED_URL_EXPIRES)
        return {"url": url, "expires_in": PRESIGNED_URL_EXPIRES}
    return {"stream": storage.open(attachment.storage_key), "attachment": attachment}


def delete_attachment(attachment_id: int, user) -> None:
    attachment = get_attachment(attachment_id)
    attachment.soft_delete()
    write_audit(action="Delete", object_type="Attachment", object_id=attachment.id,
                previous_values={"original_file_name": attachment.original_file_name,
                                 "storage_key": attachment.storage_key})
    db.session.commit()
