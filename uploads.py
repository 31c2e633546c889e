"""
File uploads: per-kind MIME allow-lists and size ceilings, stored under
config.UPLOAD_DIR with a generated name and served from /uploads.
"""
import logging
import os
import secrets
import time
from dataclasses import dataclass
from typing import FrozenSet

from fastapi import UploadFile

import config

logger = logging.getLogger(__name__)

MB = 1024 * 1024
CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class UploadKind:
    name: str
    allowed_mimes: FrozenSet[str]
    max_size: int
    error: str


IMAGE = UploadKind(
    "image",
    frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"}),
    5 * MB,
    "Only image files are allowed",
)
PDF = UploadKind("pdf", frozenset({"application/pdf"}), 20 * MB, "Only PDF files are allowed")
VIDEO = UploadKind(
    "video",
    frozenset({"video/mp4", "video/webm", "video/quicktime"}),
    100 * MB,
    "Only video files are allowed",
)

UPLOAD_KINDS = {k.name: k for k in (IMAGE, PDF, VIDEO)}


class UnsupportedMediaType(Exception):
    pass


class PayloadTooLarge(Exception):
    pass


def ensure_upload_dir() -> str:
    os.makedirs(config.UPLOAD_DIR, exist_ok=True)
    return config.UPLOAD_DIR


def generate_filename(original: str) -> str:
    _, ext = os.path.splitext(original or "")
    suffix = secrets.randbelow(10**9)
    return f"{int(time.time() * 1000)}-{suffix}{ext.lower()}"


def save_upload(file: UploadFile, kind: UploadKind) -> dict:
    content_type = (file.content_type or "").split(";")[0].strip().lower()
    if content_type not in kind.allowed_mimes:
        raise UnsupportedMediaType(kind.error)

    filename = generate_filename(file.filename)
    path = os.path.join(ensure_upload_dir(), filename)
    size = 0
    try:
        with open(path, "wb") as out:
            while True:
                chunk = file.file.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > kind.max_size:
                    raise PayloadTooLarge(f"File too large. Maximum size is {kind.max_size // MB}MB")
                out.write(chunk)
    except BaseException:
        if os.path.exists(path):
            os.remove(path)
        raise

    logger.info("Stored %s upload %s (%d bytes)", kind.name, filename, size)
    return {"url": f"{config.UPLOAD_URL_PREFIX}/{filename}", "filename": filename, "size": size}
