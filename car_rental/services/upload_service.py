"""Local-disk image uploads for vehicle photos and profile pictures."""

from __future__ import annotations

import logging
import os

from flask import current_app
from werkzeug.utils import secure_filename

from ..utils.constants import (
    ALLOWED_IMAGE_EXTENSIONS,
    MAX_PROFILE_IMAGE_BYTES,
    MAX_VEHICLE_IMAGE_BYTES,
)
from .common import utcnow

logger = logging.getLogger(__name__)

PUBLIC_PREFIX = "/uploads/"


def _upload_root() -> str:
    return current_app.config["UPLOAD_FOLDER"]


def _file_size(file) -> int:
    stream = file.stream
    pos = stream.tell()
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(pos)
    return size


class UploadService:
    """Validate and store uploaded images; return their public `/uploads/...` path."""

    @staticmethod
    def _save(file, subfolder: str, stem: str, max_bytes: int):
        if file is None or not getattr(file, "filename", ""):
            return False, "No file selected", None

        original = secure_filename(file.filename)
        ext = os.path.splitext(original)[1].lower()
        if ext not in ALLOWED_IMAGE_EXTENSIONS:
            allowed = ", ".join(sorted(ALLOWED_IMAGE_EXTENSIONS))
            return False, f"Invalid file type. Allowed: {allowed}", None

        size = _file_size(file)
        if size == 0:
            return False, "File is empty", None
        if size > max_bytes:
            return False, f"File is too large (max {max_bytes // (1024 * 1024)}MB)", None

        folder = os.path.join(_upload_root(), subfolder)
        os.makedirs(folder, exist_ok=True)
        name = f"{stem}_{utcnow().strftime('%Y%m%d%H%M%S')}{ext}"
        file.save(os.path.join(folder, name))
        logger.info("stored upload %s/%s (%d bytes)", subfolder, name, size)
        return True, "File uploaded", f"{PUBLIC_PREFIX}{subfolder}/{name}"

    @staticmethod
    def save_vehicle_image(file, car_id):
        return UploadService._save(file, "vehicles", f"vehicle_{car_id}", MAX_VEHICLE_IMAGE_BYTES)

    @staticmethod
    def save_profile_picture(file, user_id):
        return UploadService._save(file, "profiles", str(user_id), MAX_PROFILE_IMAGE_BYTES)

    @staticmethod
    def resolve_path(public_path: str):
        """Map `/uploads/...` back to a file under UPLOAD_FOLDER; None if it escapes it."""
        if not public_path or not public_path.startswith(PUBLIC_PREFIX):
            return None
        root = os.path.abspath(_upload_root())
        target = os.path.abspath(os.path.join(root, public_path[len(PUBLIC_PREFIX):]))
        if os.path.commonpath([root, target]) != root:
            return None
        return target

    @staticmethod
    def delete_file(public_path: str) -> bool:
        target = UploadService.resolve_path(public_path)
        if not target or not os.path.isfile(target):
            return False
        try:
            os.remove(target)
        except OSError:
            logger.exception("could not delete upload %s", public_path)
            return False
        return True
