"""
Unit tests for response normalization.
Covers the JSON tier, the regex fallback tiers and the structured failure.
"""
import json

import pytest

from sop_compare.models import ComparisonFailure, ComparisonItem
from sop_compare.services.response_normalizer import (
    extract_entries_manually,
    format_text_content,
    normalize,
    parse_json_entries,
    resolve_source_file,
)
from sop_compare.errors import ResponseParseError

SOP_PATHS = ['/content/sop/a.pdf', '/content/sop/b.pdf']
GUIDELINE_PATHS = ['/content/guidelines/eu_gmp.pdf', '/content/guidelines/who_tr.pdf']


def discrepancy(**overrides):
    item = {
        'id': 1,
        'discrepancy_type': 'different_parameter',
        'section': '4.2 Storage Conditions',
        'content_location': 'table',
        'Guidelines': 'Store between 2C and 8C',
        'Guidelines_pageNumber': 12,
        'User_pdf': 'Store at room temperature',
        'User_pdf_pageNumber': 3,
        'severity': 'high',
        'explanation': 'Storage temperature differs from the guideline range',
    }
    item.update(overrides)
    return item


class TestFormatTextContent:
    """Tests for text tidying."""

    def test_literal_newline_becomes_line_break(self):
        assert format_text_content('Temp: -40C\\nPressure: 2 bar') == 'Temp: -40C\nPressure: 2 bar'

    def test_clean_text_unchanged(self):
        text = 'Record the temperature twice daily.\n- Morning check\n- Evening check'
        assert format_text_content(text) == text

    def test_formatting_is_idempotent(self):
        text = 'Steps:\\n1)   Clean\\n\\n\\n2)  Dry\\n-    Inspect'
        once = format_text_content(text)
        assert format_text_content(once) == once

    def test_blank_lines_collapsed(self):
        assert format_text_content('First\n\n\n\nSecond') == 'First\n\nSecond'
        assert format_text_content('First\n   \n\nSecond') == 'First\n\nSecond'

    def test_list_marker_spacing_normalized(self):
        assert format_text_content('-    item') == '- item'
        assert format_text_content('1)   step one') == '1) step one'
        assert format_text_content('2.\tstep two') == '2. step two'

    def test_empty_values(self):
        assert format_text_content('') == ''
        assert format_text_content(None) == ''


class TestResolveSourceFile:
    """Tests for matching reported filenames to request paths."""

    def test_no_reported_name_uses_first_path(self):
        assert resolve_source_file(None, SOP_PATHS) == ('a.pdf', '/content/sop/a.pdf')

    def test_reported_name_matched_by_substring(self):
        assert resolve_source_file('b.pdf', SOP_PATHS) == ('b.pdf', '/content/sop/b.pdf')

    def test_unknown_name_falls_back_to_first_path(self):
        assert resolve_source_file('other.pdf', SOP_PATHS) == ('other.pdf', '/content/sop/a.pdf')

    def test_no_paths(self):
        assert resolve_source_file(None, []) == ('', '')


class TestJsonTier:
    """Tests for the primary JSON tier."""

    def test_one_item_per_array_element(self):
        raw = json.dumps([discrepancy(id=1), discrepancy(id=2, severity='low')])

        result = normalize(raw, SOP_PATHS, GUIDELINE_PATHS)

        assert isinstance(result, list)
        assert len(result) == 2
        assert all(isinstance(item, ComparisonItem) for item in result)
        assert all(item.status == 'discrepancy' for item in result)
        assert [item.id for item in result] == [1, 2]

    def test_status_forced_to_discrepancy(self):
        raw = json.dumps([discrepancy(status='compliant')])

        result = normalize(raw, SOP_PATHS, GUIDELINE_PATHS)

        assert result[0].status == 'discrepancy'

    def test_fields_mapped(self):
        result = normalize(json.dumps([discrepancy()]), SOP_PATHS, GUIDELINE_PATHS)
        item = result[0]

        assert item.section == '4.2 Storage Conditions'
        assert item.regulation == 'Store between 2C and 8C'
        assert item.documentation == 'Store at room temperature'
        assert item.guideline_page_number == 12
        assert item.sop_page_number == 3
        assert item.severity == 'high'
        assert item.comment == 'Storage temperature differs from the guideline range'
        assert item.discrepancy_type == 'different_parameter'
        assert item.content_location == 'table'

    def test_wrapped_object_accepted(self):
        raw = json.dumps({'discrepancies': [discrepancy(), discrepancy(id=2)]})

        result = normalize(raw, SOP_PATHS, GUIDELINE_PATHS)

        assert len(result) == 2

    def test_code_fenced_json_accepted(self):
        raw = '```json\n' + json.dumps([discrepancy()]) + '\n```'

        result = normalize(raw, SOP_PATHS, GUIDELINE_PATHS)

        assert len(result) == 1
        assert result[0].status == 'discrepancy'

    def test_empty_array_means_no_discrepancies(self):
        assert normalize('[]', SOP_PATHS, GUIDELINE_PATHS) == []

    def test_text_fields_reformatted(self):
        raw = json.dumps([discrepancy(Guidelines='Temp: -40C\\nPressure: 2 bar')])

        result = normalize(raw, SOP_PATHS, GUIDELINE_PATHS)

        assert result[0].regulation == 'Temp: -40C\nPressure: 2 bar'

    def test_unattributed_item_uses_first_paths(self):
        result = normalize(json.dumps([discrepancy()]), SOP_PATHS, GUIDELINE_PATHS)
        item = result[0]

        assert item.sop_pdf_url == SOP_PATHS[0]
        assert item.guidelines_pdf_url == GUIDELINE_PATHS[0]
        assert item.source_files.sop == 'a.pdf'
        assert item.source_files.guideline == 'eu_gmp.pdf'

    def test_reported_documents_attributed(self):
        raw = json.dumps([discrepancy(User_pdf_document='b.pdf', Guidelines_document='who_tr.pdf')])

        item = normalize(raw, SOP_PATHS, GUIDELINE_PATHS)[0]

        assert item.sop_pdf_url == '/content/sop/b.pdf'
        assert item.guidelines_pdf_url == '/content/guidelines/who_tr.pdf'

    def test_missing_page_number_uses_sentinel(self):
        entry = discrepancy()
        del entry['User_pdf_pageNumber']

        item = normalize(json.dumps([entry]), SOP_PATHS, GUIDELINE_PATHS)[0]

        assert item.sop_page_number == 'N/A'

    def test_float_page_number_coerced(self):
        item = normalize(json.dumps([discrepancy(Guidelines_pageNumber=7.0)]), SOP_PATHS, GUIDELINE_PATHS)[0]

        assert item.guideline_page_number == 7

    def test_to_dict_shape(self):
        item = normalize(json.dumps([discrepancy()]), SOP_PATHS, GUIDELINE_PATHS)[0]
        data = item.to_dict()

        assert data['pdfUrl'] == data['guidelinesPdfUrl'] == GUIDELINE_PATHS[0]
        assert data['sopPdfUrl'] == SOP_PATHS[0]
        assert data['pageNumber'] == 12
        assert data['sopPageNumber'] == 3
        assert data['sourceFiles'] == {'sop': 'a.pdf', 'guideline': 'eu_gmp.pdf'}
        assert data['discrepancy_type'] == 'different_parameter'

    def test_non_list_json_rejected(self):
        with pytest.raises(ResponseParseError):
            parse_json_entries('{"message": "no findings"}')


MALFORMED = '''Here are the findings:
{"id": 1, "section": "4.2 Storage", "status": "discrepancy", "Guidelines": "Store at 2-8C",
 "Guidelines_pageNumber": 12, "User_pdf": "Store at room temperature", "User_pdf_pageNumber": 3,
 "severity": "high", "comment": "x"},
{"id": 2, "section": "5.1 Cleaning", "status": "discrepancy", "Guidelines": "Clean daily",
 "User_pdf": "Clean weekly", "comment": "Frequency differs"
'''


class TestFallbackTiers:
    """Tests for regex extraction from malformed output."""

    def test_well_formed_and_malformed_blocks_both_extracted(self):
        result = normalize(MALFORMED, SOP_PATHS, GUIDELINE_PATHS)

        assert isinstance(result, list)
        assert len(result) == 2
        first, second = result
        assert first.id == 1
        assert first.severity == 'high'
        assert first.comment == 'x'
        assert first.guideline_page_number == 12
        assert second.id == 2
        assert second.severity == 'none'
        assert second.section == '5.1 Cleaning'
        assert second.sop_page_number == 'N/A'

    def test_structured_pass_used_when_complete(self):
        raw = MALFORMED.split('{"id": 2')[0]

        entries = extract_entries_manually(raw)

        assert len(entries) == 1
        assert entries[0]['section'] == '4.2 Storage'
        assert entries[0]['Guidelines_pageNumber'] == '12'

    def test_missing_fields_defaulted(self):
        entries = extract_entries_manually('garbage "id": 7, "Guidelines": "Use gloves" trailing')

        assert entries == [{
            'id': 7,
            'section': 'Unknown section',
            'status': 'unknown',
            'Guidelines': 'Use gloves',
            'Guidelines_document': '',
            'Guidelines_pageNumber': 'N/A',
            'User_pdf': 'No SOP text available',
            'User_pdf_document': '',
            'User_pdf_pageNumber': 'N/A',
            'severity': 'none',
            'comment': 'No comment provided',
        }]

    def test_status_kept_from_source(self):
        raw = '{"id": 1, "section": "2", "status": "compliant", "comment": "ok"'

        result = normalize(raw, SOP_PATHS, GUIDELINE_PATHS)

        assert result[0].status == 'compliant'
        assert result[0].discrepancy_type is None

    def test_truncated_schema_output_recovered(self):
        """A cut-off schema response still yields its complete records."""
        raw = json.dumps([discrepancy(), discrepancy(id=2)])[:-40]

        result = normalize(raw, SOP_PATHS, GUIDELINE_PATHS)

        assert isinstance(result, list)
        assert len(result) == 2
        assert result[0].comment == 'Storage temperature differs from the guideline range'

    def test_escaped_quotes_preserved(self):
        raw = '"id": 1, "section": "Labels", "Guidelines": "Mark as \\"Quarantine\\"", "comment": "c"'

        result = normalize(raw, SOP_PATHS, GUIDELINE_PATHS)

        assert result[0].regulation == 'Mark as "Quarantine"'

    def test_fallback_attribution_uses_first_paths(self):
        result = normalize(MALFORMED, SOP_PATHS, GUIDELINE_PATHS)

        assert all(item.sop_pdf_url == SOP_PATHS[0] for item in result)


class TestTotalFailure:
    """Tests for responses with nothing recoverable."""

    @pytest.mark.parametrize('raw', ['', 'The model refused to answer.', '{"error": "overloaded"}', None])
    def test_returns_structured_error(self, raw):
        result = normalize(raw, SOP_PATHS, GUIDELINE_PATHS)

        assert isinstance(result, ComparisonFailure)
        assert result.to_dict()['error'] is True
        assert result.message == 'Failed to process comparison results'
        assert result.details


class TestOutOfRangeIds:
    """Ids that cannot become ints fall back to the record position."""

    def test_infinite_json_id(self):
        raw = json.dumps([discrepancy(id=float('inf')), discrepancy(id=2)])
        assert 'Infinity' in raw

        result = normalize(raw, SOP_PATHS, GUIDELINE_PATHS)

        assert [item.id for item in result] == [1, 2]

    def test_exponent_overflow_id(self):
        raw = json.dumps([discrepancy()]).replace('"id": 1', '"id": 1e400')

        result = normalize(raw, SOP_PATHS, GUIDELINE_PATHS)

        assert isinstance(result, list)
        assert result[0].id == 1

    def test_oversized_digit_id_in_fallback_text(self):
        raw = 'junk "id": ' + '9' * 5000 + ', "section": "Labels", "comment": "c"'

        result = normalize(raw, SOP_PATHS, GUIDELINE_PATHS)

        assert isinstance(result, list)
        assert len(result) == 1
        assert isinstance(result[0].id, int)
        assert result[0].section == 'Labels'
