"""
Certificate data models for the development chain.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.types import CertificateIssuerPrivateKeyTypes

from ..errors import InvalidValidityWindowError


class KeyAlgorithm(Enum):
    """Supported key pair algorithms."""
    EC_P256 = "ec-p256"
    RSA_2048 = "rsa-2048"


class StoreName(Enum):
    """Named trust stores a certificate can be installed into."""
    ROOT = "root"
    CERTIFICATE_AUTHORITY = "intermediate"
    MY = "personal"


class ArtifactState(Enum):
    """Persistence state of a certificate artifact on disk."""
    NOT_CREATED = "not_created"
    PERSISTED = "persisted"


@dataclass(frozen=True)
class ValidityWindow:
    """A notBefore/notAfter pair in UTC."""
    not_before: datetime
    not_after: datetime

    def __post_init__(self):
        if self.not_before > self.not_after:
            raise InvalidValidityWindowError(
                f"Validity window is inverted: {self.not_before.isoformat()} > {self.not_after.isoformat()}"
            )

    @classmethod
    def of_certificate(cls, certificate: x509.Certificate) -> "ValidityWindow":
        """Read the validity window of an existing certificate."""
        return cls(
            not_before=certificate.not_valid_before_utc,
            not_after=certificate.not_valid_after_utc,
        )

    def contains(self, moment: datetime) -> bool:
        return self.not_before <= moment <= self.not_after

    def clamp_to(self, issuer: "ValidityWindow") -> "ValidityWindow":
        """
        Restrict this window so it never exceeds the issuer's window.

        Raises:
            InvalidValidityWindowError: If the clamped window is inverted or empty
        """
        not_before = max(self.not_before, issuer.not_before)
        not_after = min(self.not_after, issuer.not_after)
        if not_before >= not_after:
            raise InvalidValidityWindowError(
                f"Issuer window {issuer.not_before.isoformat()} - {issuer.not_after.isoformat()} "
                f"leaves no valid period for the requested certificate"
            )
        return ValidityWindow(not_before=not_before, not_after=not_after)


@dataclass(frozen=True)
class SignedCertificateBundle:
    """A certificate with its exclusively owned private key and optional chain certificates."""
    certificate: x509.Certificate
    private_key: Optional[CertificateIssuerPrivateKeyTypes] = None
    chain: Tuple[x509.Certificate, ...] = field(default_factory=tuple)
    friendly_name: Optional[str] = None

    @property
    def has_private_key(self) -> bool:
        return self.private_key is not None

    @property
    def subject(self) -> x509.Name:
        return self.certificate.subject

    @property
    def serial_number(self) -> int:
        return self.certificate.serial_number

    @property
    def validity(self) -> ValidityWindow:
        return ValidityWindow.of_certificate(self.certificate)

    def without_private_key(self) -> "SignedCertificateBundle":
        """Return a copy carrying only the public certificate."""
        return SignedCertificateBundle(
            certificate=self.certificate,
            private_key=None,
            chain=self.chain,
            friendly_name=self.friendly_name,
        )

    def __repr__(self):
        return (
            f"<SignedCertificateBundle(subject='{self.subject.rfc4514_string()}', "
            f"serial={self.serial_number}, has_private_key={self.has_private_key})>"
        )
