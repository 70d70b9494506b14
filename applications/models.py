"""
applications/models.py -- Domain dataclasses for scholarship applications.

Pure data containers. Status transitions and persistence live in
applications/store.py and applications/service.py.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ApplicationStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


@dataclass
class UploadedFile:
    """A document received from the client, before it reaches the object store."""

    filename: str
    data: bytes
    content_type: str = "application/octet-stream"


@dataclass
class ApplicationRecord:
    """A scholarship application submitted by one student.

    documents maps the original file name to the object store URL.
    id is None before the record is written to the database.
    """

    student_no: str
    scholarship_type: str
    status: str = ApplicationStatus.pending.value
    documents: dict[str, str] = field(default_factory=dict)
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""
