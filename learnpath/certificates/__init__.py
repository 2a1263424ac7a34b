"""Completion certificates.

Provides:
- Idempotent issuance once every video of a track is completed
- Public verification, revocation and download bookkeeping
- Render payload for the external PDF/QR generator
"""

from .models import CERTIFICATES_TABLES_CQL, Certificate
from .service import CertificateNotFoundError, CertificateService, NotEligibleError


__all__ = [
    "CERTIFICATES_TABLES_CQL",
    "Certificate",
    "CertificateNotFoundError",
    "CertificateService",
    "NotEligibleError",
]
