"""
Document upload and readiness polling.

Resolves logical document paths (as stored by the upload form, e.g.
``/content/sop/x.pdf``) to files on disk, pushes them to the remote file
store and waits until the remote side has finished processing them.
"""
import os
import re
import logging
import time
from typing import Callable, List, Optional, Tuple
from urllib.parse import unquote

from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

from sop_compare.errors import DocumentNotFoundError, FileProcessingError
from sop_compare.models import FileState, RemoteFile, UploadedDocument
from sop_compare.services import llm_client

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = 'application/pdf'


def _content_root() -> str:
    return os.getenv('CONTENT_ROOT') or os.path.join(os.getcwd(), 'public')


def _candidate_paths(logical_path: str, content_root: str, cwd: str) -> List[str]:
    """
    Build the ordered list of places a logical path may live.

    1. as-is if absolute, otherwise under the content root
    2. leading separator stripped, under the content root
    3. leading separator stripped, under the working directory
    4. as (2) with runs of whitespace collapsed to one space
    5. as (2) percent-decoded
    """
    normalized = logical_path.lstrip('/\\')

    if os.path.isabs(logical_path):
        as_given = logical_path
    else:
        as_given = os.path.join(content_root, logical_path)

    return [
        as_given,
        os.path.join(content_root, normalized),
        os.path.join(cwd, normalized),
        os.path.join(content_root, re.sub(r'\s+', ' ', normalized)),
        os.path.join(content_root, unquote(normalized)),
    ]


def _find_by_partial_name(logical_path: str, content_root: str) -> Optional[str]:
    """
    Look for a renamed copy of the file in its expected directory.

    Stored files get a timestamp suffix when the name collides, so any file
    containing the first underscore-delimited token of the requested basename
    is accepted.
    """
    normalized = logical_path.lstrip('/\\')
    dir_path = os.path.dirname(os.path.join(content_root, normalized))
    token = os.path.basename(normalized).split('_')[0]

    if not token or not os.path.isdir(dir_path):
        return None

    for entry in sorted(os.listdir(dir_path)):
        candidate = os.path.join(dir_path, entry)
        if token in entry and os.path.isfile(candidate):
            logger.info(f"Found file by partial name match: {candidate}")
            return candidate
    return None


def resolve_document_path(logical_path: str, content_root: Optional[str] = None,
                          cwd: Optional[str] = None) -> Tuple[str, List[str]]:
    """
    Resolve a logical document path to a file on disk.

    Args:
        logical_path: Path as known to the rest of the system.
        content_root: Public content directory (defaults to CONTENT_ROOT env
            or ``<cwd>/public``).
        cwd: Working directory used for candidate (3).

    Returns:
        Tuple of (resolved path, candidates tried).

    Raises:
        DocumentNotFoundError: If no candidate exists and no partial match is
            found.
    """
    content_root = content_root or _content_root()
    cwd = cwd or os.getcwd()

    candidates = _candidate_paths(logical_path, content_root, cwd)
    for candidate in candidates:
        logger.debug(f"Checking if file exists at: {candidate}")
        if os.path.isfile(candidate):
            return candidate, candidates

    fallback = _find_by_partial_name(logical_path, content_root)
    if fallback:
        return fallback, candidates

    logger.error(f"PDF file not found for {logical_path}. Tried: {candidates}")
    raise DocumentNotFoundError(logical_path, candidates)


def upload_document(logical_path: str, rate_limiter=None, content_root: Optional[str] = None) -> UploadedDocument:
    """
    Resolve a document and upload it to the remote file store.

    Args:
        logical_path: Path as known to the rest of the system.
        rate_limiter: Limiter to acquire a slot from once the file is found.
        content_root: Override for the public content directory.

    Returns:
        UploadedDocument linking the logical path to its remote handle.

    Raises:
        DocumentNotFoundError: If the path cannot be resolved.
    """
    resolved_path, _ = resolve_document_path(logical_path, content_root=content_root)
    logger.info(f"Found PDF at path: {resolved_path}")

    if rate_limiter is not None:
        rate_limiter.acquire()

    remote = llm_client.upload_file(
        resolved_path,
        mime_type=PDF_MIME_TYPE,
        display_name=os.path.basename(resolved_path)
    )
    return UploadedDocument(logical_path=logical_path, resolved_path=resolved_path, remote=remote)


def _poll_until_settled(document: UploadedDocument, interval: float, max_attempts: int,
                        sleep: Callable[[float], None]) -> RemoteFile:
    name = document.remote.name
    retryer = Retrying(
        retry=retry_if_result(lambda remote: remote.state is FileState.PROCESSING),
        wait=wait_fixed(interval),
        stop=stop_after_attempt(max_attempts),
        before_sleep=before_sleep_log(logger, logging.DEBUG),
        sleep=sleep,
    )
    try:
        return retryer(llm_client.get_file, name)
    except RetryError:
        logger.error(f"File {name} still processing after {max_attempts} checks")
        raise FileProcessingError(name, FileState.PROCESSING.value, timed_out=True, document=document)


def wait_for_files_active(documents: List[UploadedDocument], interval: Optional[float] = None,
                          max_attempts: Optional[int] = None,
                          sleep: Callable[[float], None] = time.sleep) -> bool:
    """
    Wait until every uploaded document is ready for use.

    Files are checked one after another. The first file that settles into a
    non-active state fails the whole batch.

    Args:
        documents: Uploaded documents to wait for.
        interval: Seconds between status checks (FILE_POLL_INTERVAL, 5).
        max_attempts: Status checks per file before giving up
            (FILE_POLL_MAX_ATTEMPTS, 120).
        sleep: Sleep function, replaceable in tests.

    Returns:
        True once all files are active.

    Raises:
        FileProcessingError: If a file fails or never leaves processing.
    """
    if interval is None:
        interval = float(os.getenv('FILE_POLL_INTERVAL', '5'))
    if max_attempts is None:
        max_attempts = int(os.getenv('FILE_POLL_MAX_ATTEMPTS', '120'))

    logger.info(f"Waiting for processing of {len(documents)} file(s)...")
    for document in documents:
        remote = _poll_until_settled(document, interval, max_attempts, sleep)
        if remote.state is not FileState.ACTIVE:
            logger.error(f"File {remote.name} failed to process ({remote.state.value})")
            raise FileProcessingError(remote.name, remote.state.value, document=document)
        document.remote = remote

    logger.info("...all files ready")
    return True
