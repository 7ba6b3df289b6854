"""Classification of incoming files into categories and bucket directories.

Files are categorized by declared content type first and by filename
extension second. The first matching rule wins:
- image/*  -> photo
- video/*  -> video
- audio/*  -> audio
- content type mentioning "pdf" or "document", or a known office/text
  extension -> document
- anything else -> other
"""
from pathlib import Path
from typing import NamedTuple, Union

from ..catalog.schemas import FileCategory

# Extension used when the filename has no dot at all
UNKNOWN_EXTENSION = ".unknown"

DOCUMENT_EXTENSIONS = frozenset(
    {".doc", ".docx", ".txt", ".pdf", ".xls", ".xlsx", ".ppt", ".pptx"}
)

# Content-type prefixes checked in order
MEDIA_PREFIXES = (
    ("image/", FileCategory.PHOTO),
    ("video/", FileCategory.VIDEO),
    ("audio/", FileCategory.AUDIO),
)

DOCUMENT_CONTENT_MARKERS = ("pdf", "document")

BUCKETS = {
    FileCategory.DOCUMENT: "documents",
    FileCategory.PHOTO: "photos",
    FileCategory.VIDEO: "videos",
    FileCategory.AUDIO: "audio",
    FileCategory.OTHER: "other",
}


class Classification(NamedTuple):
    category: FileCategory
    bucket: str


def get_file_extension(filename: str) -> str:
    """Return the lower-cased extension including the dot.

    Examples:
        >>> get_file_extension("Report.PDF")
        '.pdf'
        >>> get_file_extension("archive.tar.gz")
        '.gz'
        >>> get_file_extension("README")
        '.unknown'
    """
    dot = filename.rfind(".")
    if dot == -1:
        return UNKNOWN_EXTENSION
    return filename[dot:].lower()


def classify(content_type: str, filename: str) -> Classification:
    """Determine the category and bucket of a file.

    Total and deterministic: unknown inputs map to FileCategory.OTHER.

    Args:
        content_type: Declared content type (e.g., "image/jpeg")
        filename: Original filename, used for the extension fallback

    Returns:
        Classification with the category and its bucket directory name

    Examples:
        >>> classify("image/png", "x.pdf").category
        <FileCategory.PHOTO: 'photo'>
        >>> classify("application/octet-stream", "report.docx").bucket
        'documents'
    """
    for prefix, category in MEDIA_PREFIXES:
        if content_type.startswith(prefix):
            return Classification(category, BUCKETS[category])

    if any(marker in content_type for marker in DOCUMENT_CONTENT_MARKERS):
        return Classification(FileCategory.DOCUMENT, BUCKETS[FileCategory.DOCUMENT])
    if get_file_extension(filename) in DOCUMENT_EXTENSIONS:
        return Classification(FileCategory.DOCUMENT, BUCKETS[FileCategory.DOCUMENT])

    return Classification(FileCategory.OTHER, BUCKETS[FileCategory.OTHER])


def ensure_bucket_dirs(root: Union[str, Path]) -> Path:
    """Create the downloads root and every bucket directory.

    Called once at startup; ingestion assumes the buckets exist.
    """
    root = Path(root)
    for bucket in BUCKETS.values():
        bucket_dir = root / bucket
        if not bucket_dir.exists():
            bucket_dir.mkdir(parents=True, exist_ok=True)
    return root
