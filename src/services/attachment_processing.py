"""Attachment validation and storage for support tickets and user reports.

Handles:
- Count, size and extension limits
- Image decode check (Pillow) for jpg/jpeg/png uploads
- Storage through an attachment store
"""

from io import BytesIO
from pathlib import PurePath

from PIL import Image, UnidentifiedImageError

from src.logging import get_logger
from src.models.support import Attachment, AttachmentUpload
from src.services.errors import ValidationError
from src.storage.attachment_store import AttachmentStoreProtocol

logger = get_logger(__name__)

# Upload constraints
MAX_FILES = 5
MAX_FILE_SIZE_MB = 5
MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * 1024 * 1024
ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "pdf", "doc", "docx"}
IMAGE_EXTENSIONS = {"jpg", "jpeg", "png"}


def file_extension(filename: str) -> str:
    return PurePath(filename).suffix.lstrip(".").lower()


class AttachmentProcessor:
    """Validates uploads and stores the accepted ones."""

    def __init__(self, store: AttachmentStoreProtocol):
        """Initialize with attachment storage backend."""
        self.store = store

    def validate(self, upload: AttachmentUpload) -> str:
        """
        Check one upload against the limits.

        Returns:
            Lower-cased file extension

        Raises:
            ValidationError: File too large, disallowed type or undecodable image
        """
        extension = file_extension(upload.filename)
        if extension not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                "Only images (jpeg, jpg, png) and documents (pdf, doc, docx) are allowed",
                field="attachments",
            )

        if len(upload.data) > MAX_FILE_SIZE_BYTES:
            size_mb = len(upload.data) / (1024 * 1024)
            raise ValidationError(
                f"File too large: {size_mb:.2f}MB (max {MAX_FILE_SIZE_MB}MB)",
                field="attachments",
            )

        if extension in IMAGE_EXTENSIONS:
            try:
                with Image.open(BytesIO(upload.data)) as image:
                    image.verify()
            except (UnidentifiedImageError, OSError, SyntaxError) as e:
                raise ValidationError(
                    f"Invalid image file: {upload.filename}", field="attachments"
                ) from e

        return extension

    async def process(self, uploads: list[AttachmentUpload]) -> list[Attachment]:
        """
        Validate every upload, then store them.

        Nothing is stored unless all uploads pass validation.

        Raises:
            ValidationError: Too many files or any file fails validation
        """
        if len(uploads) > MAX_FILES:
            raise ValidationError(
                f"At most {MAX_FILES} attachments are allowed", field="attachments"
            )

        extensions = [self.validate(upload) for upload in uploads]

        attachments = []
        for upload, extension in zip(uploads, extensions):
            path = await self.store.save(upload.data, extension)
            attachments.append(
                Attachment(filename=upload.filename, path=path, mimetype=upload.content_type)
            )
            logger.info("attachment_stored", filename=upload.filename, path=path)

        return attachments
