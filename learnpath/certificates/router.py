"""Certificate API endpoints.

Provides routes for:
- Issuance (idempotent) and the holder's certificates
- Admin listing and revocation
- Download bookkeeping and renderer payload
- Public verification (no authentication)
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, Response, status
from fastapi.responses import ORJSONResponse

from learnpath.core.dependencies import CurrentUserId

from .dependencies import CertificateServiceDep
from .schemas import (
    CertificateDetailsResponse,
    CertificateListResponse,
    CertificateResponse,
    InvalidCertificateResponse,
    IssueCertificateRequest,
    IssueCertificateResponse,
    PublicCertificateResponse,
    RenderPayloadResponse,
)
from .service import CertificateNotFoundError


router = APIRouter(prefix="/v1/certificates", tags=["certificates"])
public_router = APIRouter(prefix="/certificates", tags=["certificates-public"])


@router.post(
    "",
    response_model=IssueCertificateResponse,
    summary="Issue certificate",
)
async def issue_certificate(
    data: IssueCertificateRequest,
    service: CertificateServiceDep,
    user_id: CurrentUserId,
    response: Response,
) -> IssueCertificateResponse:
    """Issue the caller's certificate for a completed track.

    Returns 201 when issued now and 200 with the stored certificate when it
    already existed.
    """
    certificate, created = await service.issue_certificate(user_id, data.track_id)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return IssueCertificateResponse(
        certificate=CertificateResponse.from_entity(certificate), created=created
    )


@router.get(
    "/me",
    response_model=list[CertificateDetailsResponse],
    summary="My certificates",
)
async def my_certificates(
    service: CertificateServiceDep,
    user_id: CurrentUserId,
) -> list[CertificateDetailsResponse]:
    """Caller's certificates, newest first."""
    items = await service.get_user_certificates(user_id)
    return [CertificateDetailsResponse.from_details(i) for i in items]


@router.get(
    "",
    response_model=CertificateListResponse,
    summary="List certificates",
)
async def list_certificates(
    service: CertificateServiceDep,
    search: Annotated[str | None, Query(max_length=200)] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 10,
) -> CertificateListResponse:
    result = await service.list_certificates(search, page, page_size)
    return CertificateListResponse(
        items=[CertificateDetailsResponse.from_details(i) for i in result.items],
        total=result.total,
    )


@router.delete(
    "/{certificate_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Revoke certificate",
)
async def revoke_certificate(
    certificate_id: UUID,
    service: CertificateServiceDep,
) -> None:
    await service.revoke_certificate(certificate_id)


@router.post(
    "/{certificate_id}/download",
    response_model=CertificateResponse,
    summary="Mark certificate as downloaded",
)
async def mark_downloaded(
    certificate_id: UUID,
    service: CertificateServiceDep,
) -> CertificateResponse:
    return CertificateResponse.from_entity(await service.mark_downloaded(certificate_id))


@router.get(
    "/{certificate_id}/render",
    response_model=RenderPayloadResponse,
    summary="Certificate render data",
)
async def render_payload(
    certificate_id: UUID,
    service: CertificateServiceDep,
) -> RenderPayloadResponse:
    """Data for the PDF/QR generator, including the verification URL."""
    return RenderPayloadResponse.from_payload(
        await service.render_payload(certificate_id)
    )


# ==============================================================================
# Public Verification
# ==============================================================================


@public_router.get(
    "/{certificate_id}",
    response_model=PublicCertificateResponse,
    responses={404: {"model": InvalidCertificateResponse}},
    summary="Verify certificate",
)
async def verify_certificate(
    certificate_id: str,
    service: CertificateServiceDep,
) -> PublicCertificateResponse | ORJSONResponse:
    """Public check that a certificate exists, with holder and track names.

    Any id that does not resolve, malformed ones included, answers 404.
    """
    try:
        parsed_id = UUID(certificate_id)
    except ValueError:
        return _invalid_certificate(CertificateNotFoundError().message)

    try:
        view = await service.verify_certificate(parsed_id)
    except CertificateNotFoundError as e:
        return _invalid_certificate(e.message)
    return PublicCertificateResponse.from_view(view)


def _invalid_certificate(reason: str) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=InvalidCertificateResponse(reason=reason).model_dump(),
    )
