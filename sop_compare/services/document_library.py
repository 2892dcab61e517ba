"""
Local document library.

Stores uploaded SOP and guideline PDFs under ``<CONTENT_ROOT>/content/<type>``
and lists what has been stored. The logical path handed back for a stored
file (``/content/<type>/<name>``) is what the comparison and chat endpoints
accept.
"""
import os
import time
import logging
from datetime import datetime, timezone
from typing import Any, BinaryIO, Callable, Dict, List, Optional

from werkzeug.utils import secure_filename

from sop_compare.services.file_manager import _content_root

logger = logging.getLogger(__name__)

DOCUMENT_TYPES = ('sop', 'guidelines')


def _type_dir(doc_type: str, content_root: Optional[str] = None) -> str:
    return os.path.join(content_root or _content_root(), 'content', doc_type)


def _available_name(directory: str, filename: str, now: Callable[[], float]) -> str:
    """Keep the name, or append a millisecond timestamp if it is taken."""
    if not os.path.exists(os.path.join(directory, filename)):
        return filename
    base, ext = os.path.splitext(filename)
    return f"{base}_{int(now() * 1000)}{ext}"


def save_document(stream: BinaryIO, filename: str, doc_type: str,
                  content_root: Optional[str] = None,
                  now: Callable[[], float] = time.time) -> Dict[str, Any]:
    """
    Write an uploaded document into the library.

    Args:
        stream: Readable binary file object.
        filename: Name supplied by the client.
        doc_type: 'sop' or 'guidelines'.
        content_root: Override for the public content directory.
        now: Clock used for the collision suffix.

    Returns:
        Dict with name (as uploaded), path (logical), type and size.

    Raises:
        ValueError: If the type is unknown or the filename is unusable.
    """
    if doc_type not in DOCUMENT_TYPES:
        raise ValueError(f"Invalid file type: {doc_type}")

    safe_name = secure_filename(filename or '')
    if not safe_name:
        raise ValueError("No file name provided")

    directory = _type_dir(doc_type, content_root)
    os.makedirs(directory, exist_ok=True)

    final_name = _available_name(directory, safe_name, now)
    file_path = os.path.join(directory, final_name)
    with open(file_path, 'wb') as fh:
        fh.write(stream.read())

    logger.info(f"Stored {doc_type} document {filename} as {file_path}")
    return {
        'name': filename,
        'path': f"/content/{doc_type}/{final_name}",
        'type': doc_type,
        'size': os.path.getsize(file_path),
    }


def list_documents(content_root: Optional[str] = None) -> List[Dict[str, Any]]:
    """All stored documents, newest first."""
    files = []
    for doc_type in DOCUMENT_TYPES:
        directory = _type_dir(doc_type, content_root)
        if not os.path.isdir(directory):
            continue
        for name in os.listdir(directory):
            file_path = os.path.join(directory, name)
            if not os.path.isfile(file_path):
                continue
            stat = os.stat(file_path)
            files.append({
                'name': name,
                'path': f"/content/{doc_type}/{name}",
                'type': doc_type,
                'size': stat.st_size,
                'uploadDate': datetime.fromtimestamp(stat.st_mtime, timezone.utc).isoformat(),
            })

    files.sort(key=lambda f: f['uploadDate'], reverse=True)
    return files
