# app/services/storage.py
"""
Attachment storage collaborator.

An upload is only acknowledged once the bytes are on disk (fsync + atomic
rename), and a submission may only reference attachments the store can
confirm. Storage problems surface as AttachmentStorageFailure, never as a
silently dropped file.
"""

import hashlib
import logging
import os
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Protocol

from app.core.errors import AttachmentRejected, AttachmentStorageFailure

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class StoredAttachment:
    reference: str
    filename: str
    content_type: str
    size: int
    sha256: str


class AttachmentStorage(Protocol):
    def save(self, filename: str, content: bytes, content_type: str) -> StoredAttachment:
        ...

    def confirm(self, references: Iterable[str]) -> List[str]:
        ...


def _safe_name(filename: str) -> str:
    name = _UNSAFE_CHARS.sub("_", os.path.basename(filename or "")).strip("._")
    return name[:100] or "attachment"


class LocalAttachmentStorage:
    def __init__(self, root_dir: str, max_bytes: int):
        self.root = Path(root_dir)
        self.max_bytes = max_bytes

    def _path_for(self, reference: str) -> Path:
        # references are generated by save(); anything else is unknown
        if "/" in reference or "\\" in reference or reference.startswith("."):
            raise AttachmentStorageFailure(f"Unknown attachment reference {reference!r}")
        return self.root / reference

    def save(self, filename: str, content: bytes, content_type: str) -> StoredAttachment:
        if len(content) > self.max_bytes:
            raise AttachmentRejected(
                f"Attachment {filename!r} is {len(content)} bytes, limit is {self.max_bytes}"
            )

        reference = f"{uuid.uuid4().hex}_{_safe_name(filename)}"
        target = self._path_for(reference)
        tmp = target.with_name(f".{reference}.part")

        try:
            self.root.mkdir(parents=True, exist_ok=True)
            with open(tmp, "wb") as fh:
                fh.write(content)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp, target)
        except OSError as exc:
            logger.error("Storing attachment %s failed: %s", filename, exc)
            try:
                tmp.unlink()
            except FileNotFoundError:
                pass
            raise AttachmentStorageFailure(f"Could not store attachment {filename!r}") from exc

        logger.info("Stored attachment %s (%s bytes)", reference, len(content))
        return StoredAttachment(
            reference=reference,
            filename=filename,
            content_type=content_type or "application/octet-stream",
            size=len(content),
            sha256=hashlib.sha256(content).hexdigest(),
        )

    def confirm(self, references: Iterable[str]) -> List[str]:
        """Return the references unchanged once each one is durably stored."""
        confirmed = []
        for reference in references:
            if not self._path_for(reference).is_file():
                raise AttachmentStorageFailure(f"Attachment {reference!r} is not stored")
            confirmed.append(reference)
        return confirmed
