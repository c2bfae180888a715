"""
Security models for certificate chain inspection.
"""
from dataclasses import dataclass, field
from typing import List
from datetime import datetime


@dataclass
class CertificateInfo:
    """Information about a certificate."""
    subject: str
    issuer: str
    serial_number: str
    not_before: datetime
    not_after: datetime
    is_valid: bool
    is_ca: bool
    fingerprint: str


@dataclass
class ChainValidationResult:
    """Result of verifying a certificate chain link by link."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)

    def get_error_summary(self) -> str:
        if not self.errors:
            return "Certificate chain is valid"
        return "\n".join(f"  - {error}" for error in self.errors)
