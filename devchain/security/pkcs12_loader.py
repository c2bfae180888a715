"""
PKCS#12 import and export for certificate bundles.
"""
import logging
import os
from typing import List, Optional, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from ..errors import BundleNotFoundError, EmptyOrMalformedBundleError, InvalidArgumentError
from ..models.certificate import SignedCertificateBundle

logger = logging.getLogger(__name__)


def _encryption_for(password: Optional[str]) -> serialization.KeySerializationEncryption:
    if password:
        return serialization.BestAvailableEncryption(password.encode("utf-8"))
    return serialization.NoEncryption()


def export_pkcs12(bundle: SignedCertificateBundle, password: Optional[str] = None) -> bytes:
    """
    Serialize a bundle to a PKCS#12 archive.

    The key (if any), the certificate and the chain certificates are written in
    that order; an empty password produces an unencrypted archive.
    """
    name = bundle.friendly_name.encode("utf-8") if bundle.friendly_name else None
    return pkcs12.serialize_key_and_certificates(
        name=name,
        key=bundle.private_key,
        cert=bundle.certificate,
        cas=list(bundle.chain) or None,
        encryption_algorithm=_encryption_for(password),
    )


def parse_pkcs12(data: bytes, password: Optional[str] = None,
                 source: str = "<memory>") -> Tuple[SignedCertificateBundle, List[x509.Certificate]]:
    """
    Partition archive contents into the first certificate carrying a private
    key and every other certificate, in the order cryptography reports
    them: the keyed certificate first, then the additional certificates.

    Raises:
        EmptyOrMalformedBundleError: If the archive cannot be read or holds no keyed certificate
    """
    try:
        archive = pkcs12.load_pkcs12(data, password.encode("utf-8") if password else None)
    except ValueError as e:
        raise EmptyOrMalformedBundleError(f"{source} is not a readable PKCS#12 archive: {e}") from e

    primary: Optional[SignedCertificateBundle] = None
    remaining: List[x509.Certificate] = []

    entries = []
    if archive.cert is not None:
        entries.append((archive.cert, archive.key))
    entries.extend((entry, None) for entry in archive.additional_certs)

    for entry, key in entries:
        if primary is None and key is not None:
            friendly_name = entry.friendly_name.decode("utf-8") if entry.friendly_name else None
            primary = SignedCertificateBundle(
                certificate=entry.certificate,
                private_key=key,
                friendly_name=friendly_name,
            )
        else:
            remaining.append(entry.certificate)

    if primary is None:
        raise EmptyOrMalformedBundleError(f"{source} does not contain a certificate with a private key")

    return primary, remaining


def load_pkcs12_bundle(path: str, password: Optional[str] = None
                       ) -> Tuple[SignedCertificateBundle, List[x509.Certificate]]:
    """
    Load a PKCS#12 file.

    Returns:
        Tuple of (certificate with private key, remaining certificates)

    Raises:
        InvalidArgumentError: If ``path`` is empty
        BundleNotFoundError: If the file does not exist
        EmptyOrMalformedBundleError: If the archive holds no certificate with a private key
    """
    if not path:
        raise InvalidArgumentError("path must be a valid filename")
    if not os.path.exists(path):
        raise BundleNotFoundError(f"{path} does not exist. Cannot load certificate from non-existing file.")

    with open(path, 'rb') as f:
        data = f.read()

    primary, remaining = parse_pkcs12(data, password, source=path)
    logger.debug(f"Loaded '{primary.subject.rfc4514_string()}' and {len(remaining)} chain certificate(s) from {path}")
    return primary, remaining
