"""
Security service for certificate inspection and chain validation.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes

from .extensions import subject_key_identifier_of
from .models import CertificateInfo, ChainValidationResult


class SecurityService:
    """Service for inspecting issued certificates and validating the development chain."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def get_certificate_info(self, cert: x509.Certificate) -> CertificateInfo:
        """Extract information from a certificate."""
        now = datetime.now(timezone.utc)

        not_before = cert.not_valid_before_utc
        not_after = cert.not_valid_after_utc

        return CertificateInfo(
            subject=cert.subject.rfc4514_string(),
            issuer=cert.issuer.rfc4514_string(),
            serial_number=format(cert.serial_number, "x"),
            not_before=not_before,
            not_after=not_after,
            is_valid=not_before <= now <= not_after,
            is_ca=self._basic_constraints(cert).ca,
            fingerprint=cert.fingerprint(hashes.SHA256()).hex()
        )

    def is_certificate_valid(self, cert: x509.Certificate, at: Optional[datetime] = None) -> bool:
        """Check if a certificate is valid at ``at`` (default: now)."""
        moment = at or datetime.now(timezone.utc)
        return cert.not_valid_before_utc <= moment <= cert.not_valid_after_utc

    def verify_chain(self, chain: List[x509.Certificate], at: Optional[datetime] = None) -> ChainValidationResult:
        """
        Verify a chain ordered root first, leaf last.

        Every link is checked for name chaining, signature, key identifier
        linkage, validity clamping, CA status and path length.
        """
        errors: List[str] = []
        if not chain:
            return ChainValidationResult(is_valid=False, errors=["Certificate chain is empty"])

        root = chain[0]
        if root.issuer != root.subject:
            errors.append(f"Root '{root.subject.rfc4514_string()}' is not self-issued")
        else:
            errors.extend(self._verify_signature(root, root))

        for index, (issuer, child) in enumerate(zip(chain, chain[1:])):
            errors.extend(self._verify_link(issuer, child))

            path_length = self._basic_constraints(issuer).path_length
            intermediates_below = len(chain) - index - 2
            if path_length is not None and intermediates_below > path_length:
                errors.append(
                    f"'{issuer.subject.rfc4514_string()}' allows {path_length} intermediate(s) "
                    f"below it but the chain has {intermediates_below}"
                )

        moment = at or datetime.now(timezone.utc)
        for cert in chain:
            if not self.is_certificate_valid(cert, moment):
                errors.append(f"'{cert.subject.rfc4514_string()}' is expired or not yet valid")

        if errors:
            for error in errors:
                self.logger.warning(f"Chain validation: {error}")
        else:
            self.logger.info(f"Certificate chain of {len(chain)} certificate(s) is valid")

        return ChainValidationResult(is_valid=not errors, errors=errors)

    def _verify_link(self, issuer: x509.Certificate, child: x509.Certificate) -> List[str]:
        errors = []
        child_name = child.subject.rfc4514_string()

        if not self._basic_constraints(issuer).ca:
            errors.append(f"Issuer of '{child_name}' is not a CA")

        errors.extend(self._verify_signature(child, issuer))

        try:
            aki = child.extensions.get_extension_for_class(x509.AuthorityKeyIdentifier).value
            if aki.key_identifier != subject_key_identifier_of(issuer).digest:
                errors.append(f"Authority key identifier of '{child_name}' does not match its issuer")
        except x509.ExtensionNotFound:
            errors.append(f"'{child_name}' has no authority key identifier")

        if child.not_valid_before_utc < issuer.not_valid_before_utc:
            errors.append(f"'{child_name}' becomes valid before its issuer")
        if child.not_valid_after_utc > issuer.not_valid_after_utc:
            errors.append(f"'{child_name}' outlives its issuer")

        return errors

    def _verify_signature(self, cert: x509.Certificate, issuer: x509.Certificate) -> List[str]:
        try:
            cert.verify_directly_issued_by(issuer)
            return []
        except InvalidSignature:
            return [f"Signature of '{cert.subject.rfc4514_string()}' does not verify against its issuer"]
        except (ValueError, TypeError) as e:
            return [f"'{cert.subject.rfc4514_string()}' is not issued by '{issuer.subject.rfc4514_string()}': {e}"]

    def _basic_constraints(self, cert: x509.Certificate) -> x509.BasicConstraints:
        try:
            return cert.extensions.get_extension_for_class(x509.BasicConstraints).value
        except x509.ExtensionNotFound:
            return x509.BasicConstraints(ca=False, path_length=None)
