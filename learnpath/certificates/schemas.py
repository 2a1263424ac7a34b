"""Pydantic schemas for certificates."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from .models import Certificate
from .service import CertificateDetails, PublicCertificateView, RenderPayload


class IssueCertificateRequest(BaseModel):
    track_id: UUID = Field(..., description="Completed track UUID")


class CertificateResponse(BaseModel):
    id: UUID
    user_id: UUID
    track_id: UUID
    issue_date: datetime
    downloaded: bool
    download_date: datetime | None = None

    @classmethod
    def from_entity(cls, entity: Certificate) -> "CertificateResponse":
        return cls(
            id=entity.id,
            user_id=entity.user_id,
            track_id=entity.track_id,
            issue_date=entity.issue_date,
            downloaded=entity.downloaded,
            download_date=entity.download_date,
        )


class IssueCertificateResponse(BaseModel):
    certificate: CertificateResponse
    created: bool = Field(description="False when the certificate already existed")


class CertificateDetailsResponse(CertificateResponse):
    """Certificate with holder and track names."""

    user_full_name: str
    track_name: str

    @classmethod
    def from_details(cls, details: CertificateDetails) -> "CertificateDetailsResponse":
        c = details.certificate
        return cls(
            id=c.id,
            user_id=c.user_id,
            track_id=c.track_id,
            issue_date=c.issue_date,
            downloaded=c.downloaded,
            download_date=c.download_date,
            user_full_name=details.user_full_name,
            track_name=details.track_name,
        )


class CertificateListResponse(BaseModel):
    items: list[CertificateDetailsResponse]
    total: int


class PublicCertificateResponse(BaseModel):
    """Public verification result."""

    id: UUID
    user_full_name: str
    track_name: str
    issue_date: datetime
    valid: Literal[True] = True

    @classmethod
    def from_view(cls, view: PublicCertificateView) -> "PublicCertificateResponse":
        return cls(
            id=view.id,
            user_full_name=view.user_full_name,
            track_name=view.track_name,
            issue_date=view.issue_date,
        )


class InvalidCertificateResponse(BaseModel):
    valid: Literal[False] = False
    reason: str


class RenderPayloadResponse(BaseModel):
    id: UUID
    user_name: str
    track_name: str
    issue_date: datetime
    verification_url: str
    user_email: str | None = None
    track_type: str | None = None

    @classmethod
    def from_payload(cls, payload: RenderPayload) -> "RenderPayloadResponse":
        return cls(
            id=payload.id,
            user_name=payload.user_name,
            track_name=payload.track_name,
            issue_date=payload.issue_date,
            verification_url=payload.verification_url,
            user_email=payload.user_email,
            track_type=payload.track_type,
        )
