"""
Comparison orchestrator - coordinates the full SOP/guideline comparison.
Uploads documents, waits for them to be processed, asks the model for every
discrepancy in one structured request and normalizes the answer.
"""
import logging
from typing import List, Optional, Sequence, Union

from sop_compare.cache import ComparisonCache, comparison_cache
from sop_compare.models import ComparisonFailure, ComparisonItem, UploadedDocument
from sop_compare.services import llm_client
from sop_compare.services.comparison_prompts import (
    COMPARISON_GENERATION_CONFIG,
    COMPARISON_PROMPT,
    SYSTEM_ACKNOWLEDGEMENT,
    SYSTEM_INSTRUCTION,
)
from sop_compare.services.file_manager import upload_document, wait_for_files_active
from sop_compare.services.rate_limiter import RateLimiter, rate_limiter as default_rate_limiter
from sop_compare.services.response_normalizer import normalize

logger = logging.getLogger(__name__)

ComparisonResult = Union[List[ComparisonItem], ComparisonFailure]


def _upload_all(paths: Sequence[str], kind: str, limiter: RateLimiter) -> List[UploadedDocument]:
    """Upload documents one at a time, keeping request order."""
    uploaded = []
    logger.info(f"Uploading {kind} documents...")
    for path in paths:
        logger.info(f"- Uploading {kind}: {path}")
        uploaded.append(upload_document(path, rate_limiter=limiter))
    return uploaded


def _build_parts(sops: List[UploadedDocument], guidelines: List[UploadedDocument]) -> List[dict]:
    """SOP files first, then guideline files, then the task instruction."""
    parts = [{'file_id': document.remote.file_id} for document in sops]
    parts.extend({'file_id': document.remote.file_id} for document in guidelines)
    parts.append({'text': COMPARISON_PROMPT})
    return parts


def compare_multiple_documents(
    sop_paths: Sequence[str],
    guideline_paths: Sequence[str],
    rate_limiter: Optional[RateLimiter] = None,
    cache: Optional[ComparisonCache] = None,
) -> ComparisonResult:
    """
    Compare SOP documents against regulatory guidelines.

    Every SOP and guideline is sent in a single request so the model can
    report discrepancies across all of them at once.

    Args:
        sop_paths: Logical paths of the SOP PDFs.
        guideline_paths: Logical paths of the guideline PDFs.
        rate_limiter: Limiter gating every outbound API call.
        cache: Cache that receives the result, success or failure.

    Returns:
        List of ComparisonItem, or a ComparisonFailure describing what went
        wrong. Never raises.
    """
    limiter = rate_limiter or default_rate_limiter
    cache = cache if cache is not None else comparison_cache
    sop_paths = list(sop_paths or [])
    guideline_paths = list(guideline_paths or [])

    try:
        if not sop_paths or not guideline_paths:
            raise ValueError("At least one SOP and one guideline path are required")

        logger.info(f"Comparing {len(sop_paths)} SOP(s) with {len(guideline_paths)} guideline(s)")

        sops = _upload_all(sop_paths, 'SOP', limiter)
        guidelines = _upload_all(guideline_paths, 'guideline', limiter)

        wait_for_files_active(sops + guidelines)

        limiter.acquire()
        session = llm_client.start_session(SYSTEM_INSTRUCTION, SYSTEM_ACKNOWLEDGEMENT)

        logger.info("Sending multi-document comparison request...")
        response_text = session.send(_build_parts(sops, guidelines), COMPARISON_GENERATION_CONFIG)
        logger.info(f"Comparison response received: {len(response_text)} chars")

        result = normalize(response_text, sop_paths, guideline_paths)

    except Exception as e:
        logger.error(f"Unexpected error in document comparison: {type(e).__name__} - {e}")
        failure = ComparisonFailure(
            message="Unexpected error during document comparison",
            details=str(e)
        )
        cache.set(failure)
        return failure

    cache.set(result)

    if isinstance(result, ComparisonFailure):
        logger.error(f"Comparison failed: {result.message} ({result.details})")
    else:
        logger.info(f"Comparison complete: {len(result)} discrepancies")
    return result


def compare_documents(sop_path: str, guideline_path: str, **kwargs) -> ComparisonResult:
    """Compare a single SOP with a single guideline."""
    return compare_multiple_documents([sop_path], [guideline_path], **kwargs)


def get_cached_comparison_result(cache: Optional[ComparisonCache] = None):
    """Most recent comparison result, or None."""
    return (cache if cache is not None else comparison_cache).get()
