"""
Normalization of raw model output into ComparisonItem records.

The model is asked for schema-constrained JSON, but output is not always
well formed. Three tiers are tried in order:

1. ``json``: parse the text as JSON (bare array or ``{"discrepancies": [...]}``).
2. ``regex``: pull key/value pairs for whole records out of the raw text; if
   that misses any record, split the text on ``"id": <n>`` boundaries and
   extract each field per chunk, defaulting whatever is absent.
3. Give up and return a ComparisonFailure.

``normalize`` never raises.
"""
import json
import os
import re
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from sop_compare.errors import ResponseParseError
from sop_compare.models import (
    UNKNOWN_PAGE,
    ComparisonFailure,
    ComparisonItem,
    PageNumber,
    SourceFiles,
)
from sop_compare.services.comparison_prompts import CONTENT_LOCATIONS, DISCREPANCY_TYPES

logger = logging.getLogger(__name__)

SEVERITY_LEVELS = ('high', 'medium', 'low', 'none')

FALLBACK_DEFAULTS = {
    'section': 'Unknown section',
    'status': 'unknown',
    'Guidelines': 'No guideline text available',
    'Guidelines_document': '',
    'Guidelines_pageNumber': UNKNOWN_PAGE,
    'User_pdf': 'No SOP text available',
    'User_pdf_document': '',
    'User_pdf_pageNumber': UNKNOWN_PAGE,
    'severity': 'none',
    'comment': 'No comment provided',
}

_LIST_KEYS = ('discrepancies', 'items', 'results')

_CODE_FENCE = re.compile(r'^\s*```(?:json)?\s*(.*?)\s*```\s*$', re.DOTALL)
_LIST_MARKER = re.compile(r'^([ \t]*[-*]|[ \t]*\d+[.)])[ \t]+(.*)', re.MULTILINE)
_BLANK_LINES = re.compile(r'\n\s*\n')

_STRING_VALUE = r'"((?:[^"\\]|\\.)*)"'
_PAGE_VALUE = r'"?([^",}\n]*)"?'


def _key(name: str) -> str:
    return r'"%s"\s*:\s*' % name


def _named_string(name: str, group: str) -> str:
    return _key(name) + r'"(?P<%s>(?:[^"\\]|\\.)*)"' % group


def _named_page(name: str, group: str) -> str:
    return _key(name) + r'"?(?P<%s>[^",}\n]*)"?' % group


_GAP = r'[^{]*?'

_STRUCTURED_ITEM = re.compile(
    _key('id') + r'"?(?P<id>\d+)"?' + _GAP
    + _named_string('section', 'section') + _GAP
    + _named_string('status', 'status') + _GAP
    + _named_string('Guidelines', 'guidelines') + _GAP
    + r'(?:' + _named_string('Guidelines_(?:document|filename)', 'guidelines_document') + _GAP + r')?'
    + _named_page('Guidelines_pageNumber', 'guidelines_page') + _GAP
    + _named_string('User_pdf', 'user_pdf') + _GAP
    + r'(?:' + _named_string('User_pdf_(?:document|filename)', 'user_pdf_document') + _GAP + r')?'
    + _named_page('User_pdf_pageNumber', 'user_pdf_page') + _GAP
    + _named_string('severity', 'severity') + _GAP
    + _named_string('comment', 'comment')
)

_ID_BOUNDARY = re.compile(_key('id') + r'"?(\d+)')

_CHUNK_FIELDS = {
    'section': re.compile(_key('section') + _STRING_VALUE),
    'status': re.compile(_key('status') + _STRING_VALUE),
    'Guidelines': re.compile(_key('Guidelines') + _STRING_VALUE),
    'Guidelines_document': re.compile(_key('Guidelines_(?:document|filename)') + _STRING_VALUE),
    'Guidelines_pageNumber': re.compile(_key('Guidelines_pageNumber') + _PAGE_VALUE),
    'User_pdf': re.compile(_key('User_pdf') + _STRING_VALUE),
    'User_pdf_document': re.compile(_key('User_pdf_(?:document|filename)') + _STRING_VALUE),
    'User_pdf_pageNumber': re.compile(_key('User_pdf_pageNumber') + _PAGE_VALUE),
    'severity': re.compile(_key('severity') + _STRING_VALUE),
    'comment': re.compile(_key('(?:comment|explanation)') + _STRING_VALUE),
}


def format_text_content(text: Optional[str]) -> str:
    """
    Tidy text returned by the model for display.

    Literal ``\\n`` sequences become real line breaks, list markers are
    followed by exactly one space and runs of blank lines collapse to one.
    Text that is already tidy comes back unchanged.
    """
    if not text:
        return ''

    formatted = str(text).replace('\\n', '\n')
    formatted = _LIST_MARKER.sub(r'\1 \2', formatted)
    formatted = _BLANK_LINES.sub('\n\n', formatted)
    return formatted


def _unescape(value: str) -> str:
    try:
        return json.loads('"%s"' % value)
    except ValueError:
        return value.replace('\\"', '"')


def _page_number(value: Any) -> PageNumber:
    """Coerce a reported page number to a positive int, or the unknown sentinel."""
    if value is None or isinstance(value, bool):
        return UNKNOWN_PAGE
    if isinstance(value, (int, float)):
        return int(value) if value >= 1 and float(value).is_integer() else UNKNOWN_PAGE

    text = str(value).strip()
    if not text:
        return UNKNOWN_PAGE
    try:
        number = float(text)
    except ValueError:
        return text
    return int(number) if number >= 1 and number.is_integer() else UNKNOWN_PAGE


def _severity(value: Any) -> str:
    severity = str(value or '').strip().lower()
    return severity if severity in SEVERITY_LEVELS else 'none'


def _enum_value(value: Any, allowed: Sequence[str]) -> Optional[str]:
    if isinstance(value, str) and value.strip().lower() in allowed:
        return value.strip().lower()
    return None


def _item_id(value: Any, fallback: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return fallback


def resolve_source_file(reported: Optional[str], paths: Sequence[str]) -> Tuple[str, str]:
    """
    Match a model-reported filename back to one of the request paths.

    Args:
        reported: Filename the model attributed the finding to, if any.
        paths: Paths supplied with the comparison request, in order.

    Returns:
        Tuple of (filename, path). When nothing is reported the first path's
        basename is used; when no path contains the filename the first path
        is returned.
    """
    if not paths:
        return reported or '', ''

    filename = reported or os.path.basename(paths[0])
    for path in paths:
        if filename in path:
            return filename, path
    return filename, paths[0]


def _reported_document(entry: Dict[str, Any], prefix: str) -> Optional[str]:
    for suffix in ('_document', '_filename'):
        value = entry.get(prefix + suffix)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _to_item(entry: Dict[str, Any], index: int, sop_paths: Sequence[str],
             guideline_paths: Sequence[str], primary: bool) -> ComparisonItem:
    sop_name, sop_path = resolve_source_file(_reported_document(entry, 'User_pdf'), sop_paths)
    guideline_name, guideline_path = resolve_source_file(
        _reported_document(entry, 'Guidelines'), guideline_paths
    )

    if primary:
        status = 'discrepancy'
        comment = entry.get('explanation') or entry.get('comment') or FALLBACK_DEFAULTS['comment']
        discrepancy_type = _enum_value(entry.get('discrepancy_type'), DISCREPANCY_TYPES)
        content_location = _enum_value(entry.get('content_location'), CONTENT_LOCATIONS)
    else:
        status = entry.get('status') or FALLBACK_DEFAULTS['status']
        comment = entry.get('comment') or FALLBACK_DEFAULTS['comment']
        discrepancy_type = None
        content_location = None

    return ComparisonItem(
        id=_item_id(entry.get('id'), index + 1),
        section=str(entry.get('section') or FALLBACK_DEFAULTS['section']),
        status=status,
        regulation=format_text_content(entry.get('Guidelines') or FALLBACK_DEFAULTS['Guidelines']),
        documentation=format_text_content(entry.get('User_pdf') or FALLBACK_DEFAULTS['User_pdf']),
        guidelines_pdf_url=guideline_path,
        sop_pdf_url=sop_path,
        guideline_page_number=_page_number(entry.get('Guidelines_pageNumber')),
        sop_page_number=_page_number(entry.get('User_pdf_pageNumber')),
        severity=_severity(entry.get('severity')),
        comment=format_text_content(comment),
        source_files=SourceFiles(sop=sop_name, guideline=guideline_name),
        discrepancy_type=discrepancy_type,
        content_location=content_location,
    )


def parse_json_entries(raw_text: str) -> List[Dict[str, Any]]:
    """
    Tier 1: parse the response as JSON.

    Raises:
        ResponseParseError: If the text is not JSON or not a list of objects.
    """
    text = raw_text or ''
    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1)

    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise ResponseParseError(f"Invalid JSON response: {e}")

    if isinstance(data, dict):
        for key in _LIST_KEYS:
            if isinstance(data.get(key), list):
                data = data[key]
                break

    if not isinstance(data, list):
        raise ResponseParseError(f"Expected a JSON array, got {type(data).__name__}")
    if not all(isinstance(entry, dict) for entry in data):
        raise ResponseParseError("JSON array contains non-object entries")
    return data


def _structured_regex_entries(raw_text: str) -> List[Dict[str, Any]]:
    entries = []
    for index, match in enumerate(_STRUCTURED_ITEM.finditer(raw_text)):
        entries.append({
            'id': _item_id(match.group('id'), index + 1),
            'section': _unescape(match.group('section')),
            'status': _unescape(match.group('status')),
            'Guidelines': _unescape(match.group('guidelines')),
            'Guidelines_document': _unescape(match.group('guidelines_document') or ''),
            'Guidelines_pageNumber': match.group('guidelines_page'),
            'User_pdf': _unescape(match.group('user_pdf')),
            'User_pdf_document': _unescape(match.group('user_pdf_document') or ''),
            'User_pdf_pageNumber': match.group('user_pdf_page'),
            'severity': _unescape(match.group('severity')),
            'comment': _unescape(match.group('comment')),
        })
    return entries


def _chunked_regex_entries(raw_text: str) -> List[Dict[str, Any]]:
    boundaries = list(_ID_BOUNDARY.finditer(raw_text))
    entries = []
    for position, boundary in enumerate(boundaries):
        end = boundaries[position + 1].start() if position + 1 < len(boundaries) else len(raw_text)
        chunk = raw_text[boundary.end():end]

        entry = {'id': _item_id(boundary.group(1), position + 1)}
        for field, pattern in _CHUNK_FIELDS.items():
            match = pattern.search(chunk)
            if match:
                value = match.group(1)
                entry[field] = value if field.endswith('pageNumber') else _unescape(value)
        entries.append(entry)
    return entries


def extract_entries_manually(raw_text: str) -> List[Dict[str, Any]]:
    """
    Tier 2: recover records from text that is not valid JSON.

    Every returned entry carries all fallback fields; missing ones get
    defaults so a record is degraded rather than dropped.

    Raises:
        ResponseParseError: If no record can be found.
    """
    text = raw_text or ''
    expected = len(_ID_BOUNDARY.findall(text))

    entries = _structured_regex_entries(text)
    if not entries or len(entries) < expected:
        logger.info(
            f"Structured extraction found {len(entries)} of {expected} records, "
            f"splitting on id boundaries"
        )
        entries = _chunked_regex_entries(text)

    if not entries:
        raise ResponseParseError("No comparison records found in response text")

    processed = []
    for entry in entries:
        record = dict(FALLBACK_DEFAULTS)
        record.update({key: value for key, value in entry.items() if value not in (None, '')})
        processed.append(record)

    logger.info(f"Manually extracted {len(processed)} items from text")
    return processed


def normalize(raw_text: str, sop_paths: Sequence[str],
              guideline_paths: Sequence[str]) -> Union[List[ComparisonItem], ComparisonFailure]:
    """
    Turn a raw model response into ComparisonItems.

    Args:
        raw_text: Text returned by the model.
        sop_paths: SOP paths from the request, in order.
        guideline_paths: Guideline paths from the request, in order.

    Returns:
        List of ComparisonItem, or a ComparisonFailure if no tier could
        recover any record.
    """
    try:
        entries = parse_json_entries(raw_text)
        logger.info(f"Successfully parsed JSON response with {len(entries)} items")
        return [
            _to_item(entry, index, sop_paths, guideline_paths, primary=True)
            for index, entry in enumerate(entries)
        ]
    except ResponseParseError as e:
        logger.warning(f"Failed to parse JSON response: {e}")

    try:
        entries = extract_entries_manually(raw_text)
        return [
            _to_item(entry, index, sop_paths, guideline_paths, primary=False)
            for index, entry in enumerate(entries)
        ]
    except ResponseParseError as e:
        logger.error(f"Failed to process response manually: {e}")
        return ComparisonFailure(
            message="Failed to process comparison results",
            details=str(e)
        )
