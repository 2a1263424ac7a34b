"""Certificate issuance and verification.

Business logic for:
- Eligibility (every video of the track completed) and idempotent issuance
- Public verification with placeholder names
- Revocation and download bookkeeping
- Data handed to the external PDF/QR renderer
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

import structlog

from learnpath.aggregation.service import AggregationService, matches_search
from learnpath.catalog.models import Track, User
from learnpath.core.clock import Clock, utc_now
from learnpath.core.exceptions import (
    ConcurrentUpdateError,
    NotFoundError,
    ValidationError,
)
from learnpath.persistence.batch import BatchLoader
from learnpath.persistence.port import EntityRepository, Page, Sort, eq, paginate
from learnpath.persistence.retry import ReadPolicy

from .models import CERTIFICATE_UNIQUE_ON, Certificate


logger = structlog.get_logger(__name__)

UNKNOWN_USER = "Unknown user"
UNKNOWN_TRACK = "Unknown track"


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CertificateNotFoundError(NotFoundError):
    """Certificate does not exist."""

    def __init__(self, message: str = "Certificate not found"):
        super().__init__(message, "certificate_not_found")


class NotEligibleError(ValidationError):
    """Track not completed yet."""

    def __init__(self, message: str = "Track not completed"):
        super().__init__(message, "not_eligible")


# ==============================================================================
# Views
# ==============================================================================


@dataclass(frozen=True)
class PublicCertificateView:
    id: UUID
    user_full_name: str
    track_name: str
    issue_date: datetime
    valid: bool = True


@dataclass(frozen=True)
class CertificateDetails:
    certificate: Certificate
    user_full_name: str
    track_name: str


@dataclass(frozen=True)
class RenderPayload:
    """Input of the external PDF/QR certificate renderer."""

    id: UUID
    user_name: str
    track_name: str
    issue_date: datetime
    verification_url: str
    user_email: str | None = None
    track_type: str | None = None


class CertificateService:
    """Service for completion certificates."""

    def __init__(
        self,
        certificates: EntityRepository[Certificate],
        users: EntityRepository[User],
        tracks: EntityRepository[Track],
        aggregation: AggregationService,
        verify_base_url: str,
        clock: Clock = utc_now,
        read_policy: ReadPolicy | None = None,
        related_policy: ReadPolicy | None = None,
    ):
        self.certificates = certificates
        self.users = users
        self.tracks = tracks
        self.aggregation = aggregation
        self.verify_base_url = verify_base_url.rstrip("/")
        self.clock = clock
        self.read_policy = read_policy or ReadPolicy()
        self.related_policy = related_policy or self.read_policy

    async def _get(self, certificate_id: UUID) -> Certificate:
        certificate = await self.read_policy.run(
            self.certificates.get_by_id, certificate_id
        )
        if certificate is None:
            raise CertificateNotFoundError
        return certificate

    # ==========================================================================
    # Issuance
    # ==========================================================================

    async def issue_certificate(
        self, user_id: UUID, track_id: UUID
    ) -> tuple[Certificate, bool]:
        """Issue the track certificate, or return the one already issued.

        Returns:
            (certificate, created). An existing certificate comes back
            unchanged with ``created=False``.

        Raises:
            NotEligibleError: Not every video of the track is completed
            TrackNotFoundError: Track does not exist
        """
        progress = await self.aggregation.track_progress(user_id, track_id)
        if not progress.is_completed:
            logger.info(
                "certificate_not_eligible",
                user_id=str(user_id),
                track_id=str(track_id),
                completed_videos=progress.completed_videos,
                total_videos=progress.total_videos,
            )
            raise NotEligibleError

        certificate, created = await self.certificates.create_if_absent(
            Certificate(user_id=user_id, track_id=track_id, issue_date=self.clock()),
            CERTIFICATE_UNIQUE_ON,
        )
        logger.info(
            "certificate_issued" if created else "certificate_already_issued",
            certificate_id=str(certificate.id),
            user_id=str(user_id),
            track_id=str(track_id),
        )
        return certificate, created

    async def revoke_certificate(self, certificate_id: UUID) -> None:
        """Delete a certificate.

        Raises:
            CertificateNotFoundError: Certificate does not exist
        """
        if not await self.certificates.delete(certificate_id):
            raise CertificateNotFoundError
        logger.info("certificate_revoked", certificate_id=str(certificate_id))

    async def mark_downloaded(self, certificate_id: UUID) -> Certificate:
        """Record a download. The first download date is kept."""
        certificate = await self._get(certificate_id)
        if certificate.downloaded:
            return certificate

        try:
            updated = await self.certificates.update(
                certificate_id,
                {"downloaded": True, "download_date": self.clock()},
                expected={"downloaded": False},
            )
        except ConcurrentUpdateError:
            # A concurrent download already recorded its date
            return await self._get(certificate_id)

        if updated is None:
            raise CertificateNotFoundError
        logger.info("certificate_downloaded", certificate_id=str(certificate_id))
        return updated

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def verify_certificate(self, certificate_id: UUID) -> PublicCertificateView:
        """Public verification view.

        Raises:
            CertificateNotFoundError: Certificate does not exist
        """
        certificate = await self._get(certificate_id)
        details = (await self._stitch([certificate]))[0]
        return PublicCertificateView(
            id=certificate.id,
            user_full_name=details.user_full_name,
            track_name=details.track_name,
            issue_date=certificate.issue_date,
        )

    async def get_user_certificates(self, user_id: UUID) -> list[CertificateDetails]:
        """User's certificates, newest first."""
        rows, _ = await self.read_policy.run(
            self.certificates.list,
            [eq("user_id", user_id)],
            Sort("issue_date", descending=True),
        )
        return await self._stitch(rows)

    async def list_certificates(
        self,
        search: str | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> Page[CertificateDetails]:
        """All certificates with holder and track names (admin).

        ``search`` matches the user or track name after the stitch.
        """
        sort = Sort("issue_date", descending=True)
        if not search:
            rows, total = await self.read_policy.run(
                self.certificates.list, None, sort, page, page_size
            )
            return Page(items=await self._stitch(rows), total=total)

        rows, _ = await self.read_policy.run(self.certificates.list, None, sort)
        matching = [
            item
            for item in await self._stitch(rows)
            if matches_search(search, item.user_full_name, item.track_name)
        ]
        return Page(items=paginate(matching, page, page_size), total=len(matching))

    async def render_payload(self, certificate_id: UUID) -> RenderPayload:
        """Data for the PDF/QR renderer, with the public verification URL."""
        certificate = await self._get(certificate_id)
        users = await BatchLoader(self.users, self.related_policy).load(
            [certificate.user_id]
        )
        tracks = await BatchLoader(self.tracks, self.related_policy).load(
            [certificate.track_id]
        )
        user = users.get(certificate.user_id)
        track = tracks.get(certificate.track_id)
        return RenderPayload(
            id=certificate.id,
            user_name=user.full_name if user else UNKNOWN_USER,
            track_name=track.name if track else UNKNOWN_TRACK,
            issue_date=certificate.issue_date,
            verification_url=self.verification_url(certificate.id),
            user_email=user.email if user else None,
            track_type=track.type.value if track else None,
        )

    def verification_url(self, certificate_id: UUID) -> str:
        return f"{self.verify_base_url}/{certificate_id}"

    async def _stitch(self, rows: list[Certificate]) -> list[CertificateDetails]:
        if not rows:
            return []
        users = await BatchLoader(self.users, self.related_policy).load(
            c.user_id for c in rows
        )
        tracks = await BatchLoader(self.tracks, self.related_policy).load(
            c.track_id for c in rows
        )
        details = []
        for certificate in rows:
            user = users.get(certificate.user_id)
            track = tracks.get(certificate.track_id)
            details.append(
                CertificateDetails(
                    certificate=certificate,
                    user_full_name=user.full_name if user else UNKNOWN_USER,
                    track_name=track.name if track else UNKNOWN_TRACK,
                )
            )
        return details
