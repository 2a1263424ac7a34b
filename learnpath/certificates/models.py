"""Database models for completion certificates.

One certificate per (user_id, track_id), enforced through the
``certificates_unique`` lookup table.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from learnpath.core.clock import ensure_utc_aware
from learnpath.persistence.cassandra import unique_table_cql


CERTIFICATE_UNIQUE_ON = ("user_id", "track_id")


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

CERTIFICATES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates (
    id UUID PRIMARY KEY,
    user_id UUID,
    track_id UUID,
    issue_date TIMESTAMP,
    downloaded BOOLEAN,
    download_date TIMESTAMP
)
"""

CERTIFICATES_BY_USER_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS certificates_user_idx
ON {keyspace}.certificates (user_id)
"""

CERTIFICATES_TABLES_CQL = [
    CERTIFICATES_TABLE_CQL,
    unique_table_cql("certificates"),
    CERTIFICATES_BY_USER_INDEX_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class Certificate:
    """Completion credential for a track.

    Attributes:
        issue_date: When the certificate was first issued
        downloaded: Whether the holder has downloaded it
        download_date: First download, kept on later downloads
    """

    user_id: UUID
    track_id: UUID
    issue_date: datetime = field(default_factory=lambda: datetime.now(UTC))
    downloaded: bool = False
    download_date: datetime | None = None
    id: UUID = field(default_factory=uuid4)

    @classmethod
    def from_row(cls, row: Any) -> "Certificate":
        """Create Certificate instance from Cassandra row."""
        return cls(
            id=row.id,
            user_id=row.user_id,
            track_id=row.track_id,
            issue_date=ensure_utc_aware(row.issue_date) or datetime.now(UTC),
            downloaded=bool(row.downloaded),
            download_date=ensure_utc_aware(row.download_date),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "track_id": self.track_id,
            "issue_date": self.issue_date,
            "downloaded": self.downloaded,
            "download_date": self.download_date,
        }

    def __repr__(self) -> str:
        return f"<Certificate {self.id} user={self.user_id} track={self.track_id}>"
