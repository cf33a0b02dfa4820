# User value: This file rejects unusable contract files before any upload is attempted.
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from config import MAX_UPLOAD_FILE_SIZE_BYTES
from schemas.job_contract import (
    DEFAULT_ALLOWED_MIME_TYPES,
    EXTENSION_MIME_TYPES,
    MIME_DISPLAY_EXTENSIONS,
    REJECT_EMPTY_SELECTION,
    REJECT_TOO_LARGE,
    REJECT_UNSUPPORTED_TYPE,
)
from schemas.responses import UploadValidation


@dataclass
class UploadedFile:
    """A file picked by the user, held only for the lifetime of one workflow."""

    name: str
    size: int
    content_type: str = ""
    data: Optional[bytes] = field(default=None, repr=False)
    path: Optional[Path] = None

    def __post_init__(self) -> None:
        if not self.content_type:
            self.content_type = guess_content_type(self.name)

    @classmethod
    def from_bytes(cls, name: str, data: bytes, content_type: str = "") -> "UploadedFile":
        return cls(name=name, size=len(data), content_type=content_type, data=data)

    @classmethod
    def from_path(cls, path: str | Path, content_type: str = "") -> "UploadedFile":
        p = Path(path)
        return cls(name=p.name, size=p.stat().st_size, content_type=content_type, path=p)

    def read(self) -> bytes:
        if self.data is not None:
            return self.data
        if self.path is not None:
            return self.path.read_bytes()
        return b""

    def release(self) -> None:
        self.data = None


# User value: supports guess_content_type so files without a browser MIME still get routed.
def guess_content_type(filename: str | None) -> str:
    ext = os.path.splitext(str(filename or "").strip().lower())[1]
    return EXTENSION_MIME_TYPES.get(ext, "")


def _allowed_extensions_text(allowed_types: Iterable[str]) -> str:
    return ", ".join(MIME_DISPLAY_EXTENSIONS.get(t, t) for t in allowed_types)


def _reject(reason: str, message: str) -> UploadValidation:
    return UploadValidation(valid=False, reason=reason, message=message)


# User value: refuses empty, unsupported, or oversized contracts instantly and without a network call.
def validate_upload(
    file: Optional[UploadedFile],
    *,
    allowed_types: Iterable[str] = DEFAULT_ALLOWED_MIME_TYPES,
    max_size_bytes: int = MAX_UPLOAD_FILE_SIZE_BYTES,
) -> UploadValidation:
    allowed = tuple(allowed_types)

    if file is None:
        return _reject(REJECT_EMPTY_SELECTION, "Please select a file")

    if file.size <= 0:
        return _reject(REJECT_EMPTY_SELECTION, "File appears to be corrupted or empty")

    mime = str(file.content_type or "").strip().lower()
    if mime not in allowed:
        return _reject(
            REJECT_UNSUPPORTED_TYPE,
            f"File type not supported. Please upload: {_allowed_extensions_text(allowed)}",
        )

    if file.size > max_size_bytes:
        max_mb = round(max_size_bytes / (1024 * 1024))
        return _reject(REJECT_TOO_LARGE, f"File is too large. Maximum size is {max_mb}MB")

    return UploadValidation(valid=True)
