"""
Certificate factory for the root, intermediate and leaf certificates of the
development chain.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional, Union

from cryptography import x509
from cryptography.x509.oid import NameOID

from ..errors import EmptySubjectNameError, InvalidArgumentError, IssuerLacksPrivateKeyError
from ..models.certificate import KeyAlgorithm, SignedCertificateBundle, ValidityWindow
from . import validity
from .extensions import (
    ExtensionSet,
    build_intermediate_extensions,
    build_leaf_extensions,
    build_root_extensions,
    build_rsa_signed_extensions,
)
from .key_backend import PrivateKey, generate_key_pair, select_signer

SubjectName = Union[str, x509.Name]


def build_distinguished_name(subject_name: SubjectName) -> x509.Name:
    """
    Turn a common name (or an already built name) into a distinguished name.

    Raises:
        InvalidArgumentError: If ``subject_name`` is None or of the wrong type
        EmptySubjectNameError: If the common name is blank
    """
    if subject_name is None:
        raise InvalidArgumentError("Distinguished name must not be None")
    if isinstance(subject_name, x509.Name):
        return subject_name
    if not isinstance(subject_name, str):
        raise InvalidArgumentError(f"Subject name must be a string or x509.Name, got {type(subject_name).__name__}")
    if not subject_name.strip():
        raise EmptySubjectNameError("Subject name must be a non-empty common name")
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, subject_name)])


def _require_issuer_key(issuer: SignedCertificateBundle) -> PrivateKey:
    if issuer is None:
        raise InvalidArgumentError("Issuer bundle must not be None")
    if not issuer.has_private_key:
        raise IssuerLacksPrivateKeyError(
            f"Issuer '{issuer.subject.rfc4514_string()}' must carry a private key to sign certificates"
        )
    return issuer.private_key


class CertificateFactory:
    """Issues self-signed and issuer-signed certificates with their private keys attached."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            clock: Returns the current UTC time; used for validity windows and serials
        """
        self.clock = clock or validity.utc_now
        self.logger = logging.getLogger(__name__)

    def create_root_ca(self, subject_name: SubjectName,
                       validity_span: Optional[timedelta] = None,
                       friendly_name: Optional[str] = None) -> SignedCertificateBundle:
        """Create a self-signed root CA with an EC P-256 key."""
        name = build_distinguished_name(subject_name)
        now = self.clock()
        key = generate_key_pair(KeyAlgorithm.EC_P256)
        extensions = build_root_extensions(key.public_key())
        window = validity.ca_window(validity_span, now=now)

        bundle = self._issue(name, name, key, key, extensions, window, now, friendly_name)
        self.logger.info(f"Created root CA '{name.rfc4514_string()}' valid until {window.not_after.isoformat()}")
        return bundle

    def create_intermediate_ca(self, subject_name: SubjectName, issuer: SignedCertificateBundle,
                               validity_span: Optional[timedelta] = None,
                               friendly_name: Optional[str] = None) -> SignedCertificateBundle:
        """
        Create an EC intermediate CA signed by ``issuer``.

        Raises:
            IssuerLacksPrivateKeyError: If the issuer bundle has no private key
            InvalidValidityWindowError: If the issuer's window leaves no valid period
        """
        name = build_distinguished_name(subject_name)
        issuer_key = _require_issuer_key(issuer)
        now = self.clock()
        key = generate_key_pair(KeyAlgorithm.EC_P256)
        extensions = build_intermediate_extensions(key.public_key(), issuer.certificate)
        window = validity.ca_window(validity_span, issuer.validity, now=now)

        bundle = self._issue(name, issuer.subject, key, issuer_key, extensions, window, now, friendly_name)
        self.logger.info(
            f"Created intermediate CA '{name.rfc4514_string()}' signed by "
            f"'{issuer.subject.rfc4514_string()}'"
        )
        return bundle

    def create_rsa_signed(self, subject_name: SubjectName, issuer: SignedCertificateBundle,
                          friendly_name: Optional[str] = None) -> SignedCertificateBundle:
        """
        Create an RSA-2048 certificate signed with the issuer's own key algorithm.

        Raises:
            IssuerLacksPrivateKeyError: If the issuer bundle has no private key
        """
        name = build_distinguished_name(subject_name)
        issuer_key = _require_issuer_key(issuer)
        now = self.clock()
        key = generate_key_pair(KeyAlgorithm.RSA_2048)
        extensions = build_rsa_signed_extensions(key.public_key(), issuer.certificate)
        window = validity.rsa_window(issuer.validity, now=now)

        bundle = self._issue(name, issuer.subject, key, issuer_key, extensions, window, now, friendly_name)
        self.logger.info(f"Created RSA certificate '{name.rfc4514_string()}'")
        return bundle

    def create_leaf(self, subject_name: str, issuer: Optional[SignedCertificateBundle] = None,
                    valid_days: int = validity.LEAF_VALID_DAYS,
                    alternate_names: Iterable[str] = (),
                    friendly_name: Optional[str] = None) -> SignedCertificateBundle:
        """
        Create an EC server certificate whose SAN lists ``subject_name`` and
        every alternate name. Without an issuer the certificate is self-signed.

        Raises:
            EmptySubjectNameError: If ``subject_name`` is blank
            IssuerLacksPrivateKeyError: If an issuer without private key is given
            InvalidArgumentError: If a DNS name cannot be IDNA encoded
            InvalidValidityWindowError: If the issuer's window leaves no valid period
        """
        if issuer is not None:
            _require_issuer_key(issuer)
        if subject_name is None or not str(subject_name).strip():
            raise EmptySubjectNameError("subject_name must be a valid DNS name")

        name = build_distinguished_name(subject_name)
        alternate_names = list(alternate_names)
        now = self.clock()
        key = generate_key_pair(KeyAlgorithm.EC_P256)
        issuer_certificate = issuer.certificate if issuer is not None else None
        extensions = build_leaf_extensions(key.public_key(), subject_name, alternate_names, issuer_certificate)
        window = validity.leaf_window(valid_days, issuer.validity if issuer is not None else None, now=now)

        if issuer is not None:
            bundle = self._issue(name, issuer.subject, key, issuer.private_key, extensions, window, now, friendly_name)
        else:
            bundle = self._issue(name, name, key, key, extensions, window, now, friendly_name)

        self.logger.info(
            f"Created leaf certificate '{subject_name}' with {len(alternate_names)} alternate name(s)"
        )
        return bundle

    def _issue(self, subject: x509.Name, issuer_name: x509.Name, key: PrivateKey, signing_key: PrivateKey,
               extensions: ExtensionSet, window: ValidityWindow, now: datetime,
               friendly_name: Optional[str]) -> SignedCertificateBundle:
        """Common skeleton: assemble the builder, sign with the issuer's signer, attach the key."""
        serial = validity.serial_to_int(validity.compute_serial(now))

        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(issuer_name)
            .public_key(key.public_key())
            .serial_number(serial)
            .not_valid_before(window.not_before)
            .not_valid_after(window.not_after)
        )
        for extension, critical in extensions:
            builder = builder.add_extension(extension, critical=critical)

        certificate = select_signer(signing_key).sign_certificate(builder)
        self.logger.debug(f"Issued serial {serial:x} for '{subject.rfc4514_string()}'")
        return SignedCertificateBundle(
            certificate=certificate,
            private_key=key,
            friendly_name=friendly_name,
        )
