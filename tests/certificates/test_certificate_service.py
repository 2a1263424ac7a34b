"""Tests for certificate issuance, verification and bookkeeping."""

import asyncio
from uuid import uuid4

import pytest
from conftest import VERIFY_BASE_URL

from learnpath.catalog.exceptions import TrackNotFoundError
from learnpath.catalog.models import User
from learnpath.certificates.models import Certificate
from learnpath.certificates.service import (
    UNKNOWN_TRACK,
    UNKNOWN_USER,
    CertificateNotFoundError,
    CertificateService,
    NotEligibleError,
)


async def finish_track(tracker, catalog):
    for video in catalog.videos:
        await tracker.mark_completed(catalog.user.id, video.id)


class TestIssue:
    @pytest.mark.asyncio
    async def test_not_eligible_until_every_video_completed(
        self, certificate_service: CertificateService, tracker, catalog, repos
    ):
        await tracker.mark_completed(catalog.user.id, catalog.videos[0].id)

        with pytest.raises(NotEligibleError):
            await certificate_service.issue_certificate(
                catalog.user.id, catalog.track.id
            )
        assert await repos.certificates.count() == 0

    @pytest.mark.asyncio
    async def test_issue_once(self, certificate_service, tracker, catalog, clock):
        await finish_track(tracker, catalog)

        first, created = await certificate_service.issue_certificate(
            catalog.user.id, catalog.track.id
        )
        clock.advance(3600)
        second, created_again = await certificate_service.issue_certificate(
            catalog.user.id, catalog.track.id
        )

        assert created is True
        assert created_again is False
        assert second.id == first.id
        assert second.issue_date == first.issue_date
        assert first.downloaded is False

    @pytest.mark.asyncio
    async def test_concurrent_issuance_stores_one_row(
        self, certificate_service, tracker, catalog, repos
    ):
        await finish_track(tracker, catalog)

        results = await asyncio.gather(
            *(
                certificate_service.issue_certificate(catalog.user.id, catalog.track.id)
                for _ in range(5)
            )
        )

        assert await repos.certificates.count() == 1
        assert len({c.id for c, _ in results}) == 1
        assert sum(1 for _, created in results if created) == 1

    @pytest.mark.asyncio
    async def test_unknown_track(self, certificate_service, catalog):
        with pytest.raises(TrackNotFoundError):
            await certificate_service.issue_certificate(catalog.user.id, uuid4())


class TestVerify:
    @pytest.mark.asyncio
    async def test_public_view_has_names(self, certificate_service, tracker, catalog):
        await finish_track(tracker, catalog)
        cert, _ = await certificate_service.issue_certificate(
            catalog.user.id, catalog.track.id
        )

        view = await certificate_service.verify_certificate(cert.id)

        assert view.valid is True
        assert view.user_full_name == "Ana Souza"
        assert view.track_name == "Onboarding"

    @pytest.mark.asyncio
    async def test_deleted_user_and_track_become_placeholders(
        self, certificate_service, repos
    ):
        cert = await repos.certificates.create(
            Certificate(user_id=uuid4(), track_id=uuid4())
        )

        view = await certificate_service.verify_certificate(cert.id)

        assert view.user_full_name == UNKNOWN_USER
        assert view.track_name == UNKNOWN_TRACK

    @pytest.mark.asyncio
    async def test_unknown_certificate(self, certificate_service):
        with pytest.raises(CertificateNotFoundError):
            await certificate_service.verify_certificate(uuid4())


class TestBookkeeping:
    @pytest.mark.asyncio
    async def test_first_download_date_is_kept(
        self, certificate_service, repos, catalog, clock
    ):
        cert = await repos.certificates.create(
            Certificate(user_id=catalog.user.id, track_id=catalog.track.id)
        )

        first = await certificate_service.mark_downloaded(cert.id)
        downloaded_at = clock()
        clock.advance(600)
        second = await certificate_service.mark_downloaded(cert.id)

        assert first.downloaded is True
        assert second.download_date == downloaded_at

    @pytest.mark.asyncio
    async def test_revoke(self, certificate_service, repos, catalog):
        cert = await repos.certificates.create(
            Certificate(user_id=catalog.user.id, track_id=catalog.track.id)
        )

        await certificate_service.revoke_certificate(cert.id)

        with pytest.raises(CertificateNotFoundError):
            await certificate_service.revoke_certificate(cert.id)

    @pytest.mark.asyncio
    async def test_revoked_certificate_can_be_issued_again(
        self, certificate_service, tracker, catalog
    ):
        await finish_track(tracker, catalog)
        cert, _ = await certificate_service.issue_certificate(
            catalog.user.id, catalog.track.id
        )
        await certificate_service.revoke_certificate(cert.id)

        again, created = await certificate_service.issue_certificate(
            catalog.user.id, catalog.track.id
        )

        assert created is True
        assert again.id != cert.id


class TestQueries:
    @pytest.mark.asyncio
    async def test_user_certificates_newest_first(
        self, certificate_service, repos, catalog, clock
    ):
        older = await repos.certificates.create(
            Certificate(
                user_id=catalog.user.id, track_id=catalog.track.id, issue_date=clock()
            )
        )
        newer = await repos.certificates.create(
            Certificate(
                user_id=catalog.user.id,
                track_id=uuid4(),
                issue_date=clock.advance(60),
            )
        )

        items = await certificate_service.get_user_certificates(catalog.user.id)

        assert [i.certificate.id for i in items] == [newer.id, older.id]
        assert items[0].track_name == UNKNOWN_TRACK

    @pytest.mark.asyncio
    async def test_list_search_matches_names(self, certificate_service, repos, catalog):
        other = await repos.users.create(User(full_name="Carlos Lima"))
        for user_id in (catalog.user.id, other.id):
            await repos.certificates.create(
                Certificate(user_id=user_id, track_id=catalog.track.id)
            )

        everything = await certificate_service.list_certificates()
        carlos = await certificate_service.list_certificates(search="carlos")
        by_track = await certificate_service.list_certificates(
            search="onboard", page=1, page_size=1
        )

        assert everything.total == 2
        assert [i.user_full_name for i in carlos.items] == ["Carlos Lima"]
        assert carlos.total == 1
        assert by_track.total == 2
        assert len(by_track.items) == 1

    @pytest.mark.asyncio
    async def test_render_payload(self, certificate_service, repos, catalog):
        cert = await repos.certificates.create(
            Certificate(user_id=catalog.user.id, track_id=catalog.track.id)
        )

        payload = await certificate_service.render_payload(cert.id)

        assert payload.user_name == "Ana Souza"
        assert payload.user_email == "ana@example.com"
        assert payload.track_type == "track"
        assert payload.verification_url == f"{VERIFY_BASE_URL}/{cert.id}"
