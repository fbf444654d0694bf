import os
import re
from typing import Iterable, Optional
from uuid import uuid4

from storefront.config import settings
from storefront.errors import StorageError, ValidationError
from storefront.utils.logging import get_logger

log = get_logger("storefront.proof_storage")

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


class LocalProofStorage:
    """
    Stores payment proof files on local disk and hands back a URL under
    PROOF_BASE_URL. store() either writes the whole file or raises.
    """

    def __init__(
        self,
        root_dir: str,
        base_url: str,
        max_bytes: int,
        allowed_types: Iterable[str],
    ):
        self.root_dir = root_dir
        self.base_url = base_url.rstrip("/")
        self.max_bytes = max_bytes
        self.allowed_types = {t.lower() for t in allowed_types}

    @classmethod
    def from_settings(cls) -> "LocalProofStorage":
        return cls(
            root_dir=settings.PROOF_UPLOAD_DIR,
            base_url=settings.PROOF_BASE_URL,
            max_bytes=settings.PROOF_MAX_BYTES,
            allowed_types=settings.PROOF_ALLOWED_TYPES,
        )

    def store(
        self,
        data: bytes,
        filename: str,
        content_type: str,
        folder: Optional[str] = None,
    ) -> str:
        if not data:
            raise ValidationError("Uploaded file is empty", identifier=filename)
        if len(data) > self.max_bytes:
            raise ValidationError(
                f"File exceeds the {self.max_bytes // (1024 * 1024)}MB limit",
                identifier=filename,
            )
        if (content_type or "").lower() not in self.allowed_types:
            raise ValidationError(
                "Only images (JPEG, PNG, GIF, WebP) and PDF files are allowed",
                identifier=filename,
            )

        safe_name = _UNSAFE.sub("_", os.path.basename(filename or "")).strip("._") or "proof"
        stored_name = f"{uuid4().hex[:12]}_{safe_name}"
        parts = [p for p in (folder,) if p]
        target_dir = os.path.join(self.root_dir, *parts)
        try:
            os.makedirs(target_dir, exist_ok=True)
            with open(os.path.join(target_dir, stored_name), "wb") as fh:
                fh.write(data)
        except OSError as e:
            log.error(f"store(): write failed for {stored_name}: {e}")
            raise StorageError("Could not save the uploaded file; try again", identifier=filename)

        url = "/".join([self.base_url, *parts, stored_name])
        log.info(f"store(): saved {stored_name} ({len(data)} bytes)")
        return url

    def health_check(self) -> bool:
        try:
            os.makedirs(self.root_dir, exist_ok=True)
            return os.access(self.root_dir, os.W_OK)
        except OSError:
            return False
