"""
Data types shared by the comparison pipeline.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

PageNumber = Union[int, str]

# Page number used when the model did not report one
UNKNOWN_PAGE = "N/A"


class FileState(Enum):
    """Lifecycle state of a file held by the remote file store."""
    PROCESSING = "processing"
    ACTIVE = "active"
    FAILED = "failed"

    @classmethod
    def from_remote(cls, status: Optional[str]) -> "FileState":
        """
        Map a remote status string onto a FileState.

        Unknown or missing statuses are treated as FAILED so a file is never
        used before the remote side reports it ready.
        """
        value = (status or "").strip().lower()
        if value in ("uploaded", "processing", "pending"):
            return cls.PROCESSING
        if value in ("processed", "active", "ready"):
            return cls.ACTIVE
        return cls.FAILED


@dataclass(frozen=True)
class RemoteFile:
    """Handle returned by the remote file store."""
    name: str
    display_name: str
    state: FileState
    uri: Optional[str] = None

    @property
    def file_id(self) -> str:
        return self.uri or self.name


@dataclass
class UploadedDocument:
    """A local document that has been pushed to the remote file store."""
    logical_path: str
    resolved_path: str
    remote: RemoteFile


@dataclass(frozen=True)
class SourceFiles:
    sop: str
    guideline: str

    def to_dict(self) -> Dict[str, str]:
        return {'sop': self.sop, 'guideline': self.guideline}


@dataclass(frozen=True)
class ComparisonItem:
    """
    One discrepancy (or, on the fallback path, one finding) between an SOP and
    a guideline.

    ``to_dict`` produces the JSON shape consumed by the comparison panel and
    stored with persisted results.
    """
    id: int
    section: str
    status: str
    regulation: str
    documentation: str
    guidelines_pdf_url: str
    sop_pdf_url: str
    guideline_page_number: PageNumber
    sop_page_number: PageNumber
    severity: str
    comment: str
    source_files: SourceFiles
    discrepancy_type: Optional[str] = None
    content_location: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'section': self.section,
            'status': self.status,
            'regulation': self.regulation,
            'documentation': self.documentation,
            'pdfUrl': self.guidelines_pdf_url,
            'guidelinesPdfUrl': self.guidelines_pdf_url,
            'sopPdfUrl': self.sop_pdf_url,
            'pageNumber': self.guideline_page_number,
            'sopPageNumber': self.sop_page_number,
            'severity': self.severity,
            'comment': self.comment,
            'sourceFiles': self.source_files.to_dict(),
        }
        if self.discrepancy_type is not None:
            data['discrepancy_type'] = self.discrepancy_type
        if self.content_location is not None:
            data['content_location'] = self.content_location
        return data


@dataclass(frozen=True)
class ComparisonFailure:
    """Structured error result handed back instead of raising."""
    message: str
    details: str = ""
    error: bool = field(default=True, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {'error': self.error, 'message': self.message, 'details': self.details}
