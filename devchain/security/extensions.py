"""
Role-specific X.509 extension sets.

Each builder returns an ordered list of ``(extension, critical)`` pairs that
the certificate factory adds to its builder in order.
"""
import ipaddress
from typing import Iterable, List, Optional, Tuple

from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID

from ..errors import InvalidArgumentError

ExtensionSet = List[Tuple[x509.ExtensionType, bool]]

SERVER_CLIENT_OCSP_USAGES = [
    ExtendedKeyUsageOID.CLIENT_AUTH,
    ExtendedKeyUsageOID.SERVER_AUTH,
    ExtendedKeyUsageOID.OCSP_SIGNING,
]

ROOT_PATH_LENGTH = 3


def _key_usage(digital_signature=False, key_encipherment=False,
               key_cert_sign=False, crl_sign=False) -> x509.KeyUsage:
    return x509.KeyUsage(
        digital_signature=digital_signature,
        content_commitment=False,
        key_encipherment=key_encipherment,
        data_encipherment=False,
        key_agreement=False,
        key_cert_sign=key_cert_sign,
        crl_sign=crl_sign,
        encipher_only=False,
        decipher_only=False,
    )


def _extended_key_usage() -> x509.ExtendedKeyUsage:
    return x509.ExtendedKeyUsage(SERVER_CLIENT_OCSP_USAGES)


def subject_key_identifier_of(certificate: x509.Certificate) -> x509.SubjectKeyIdentifier:
    """Return the certificate's SKI, deriving it from the public key when absent."""
    try:
        return certificate.extensions.get_extension_for_class(x509.SubjectKeyIdentifier).value
    except x509.ExtensionNotFound:
        return x509.SubjectKeyIdentifier.from_public_key(certificate.public_key())


def authority_key_identifier_from_certificate(issuer: x509.Certificate) -> x509.AuthorityKeyIdentifier:
    """
    Build an AKI pointing at ``issuer``: its key identifier plus the issuer's
    own issuer name and serial number.
    """
    return x509.AuthorityKeyIdentifier(
        key_identifier=subject_key_identifier_of(issuer).digest,
        authority_cert_issuer=[x509.DirectoryName(issuer.issuer)],
        authority_cert_serial_number=issuer.serial_number,
    )


def to_dns_name(name: str) -> x509.DNSName:
    """
    DNS entry for ``name``; internationalized names are stored as A-labels.

    Raises:
        InvalidArgumentError: If the name cannot be IDNA encoded
    """
    if name.isascii():
        return x509.DNSName(name)
    try:
        return x509.DNSName(name.encode("idna").decode("ascii"))
    except UnicodeError as e:
        raise InvalidArgumentError(f"Cannot encode DNS name {name!r}: {e}") from e


def classify_alternate_name(name: str) -> x509.GeneralName:
    """Return an IPAddress entry for IP literals and a DNSName otherwise."""
    try:
        return x509.IPAddress(ipaddress.ip_address(name))
    except ValueError:
        return to_dns_name(name)


def build_subject_alternative_names(subject_name: str,
                                    alternate_names: Iterable[str] = ()) -> x509.SubjectAlternativeName:
    """The subject name is always the first DNS entry."""
    names: List[x509.GeneralName] = [to_dns_name(subject_name)]
    names.extend(classify_alternate_name(name) for name in alternate_names)
    return x509.SubjectAlternativeName(names)


def build_root_extensions(public_key) -> ExtensionSet:
    """Extensions for a self-signed root CA."""
    ski = x509.SubjectKeyIdentifier.from_public_key(public_key)
    return [
        (x509.BasicConstraints(ca=True, path_length=ROOT_PATH_LENGTH), True),
        (_key_usage(key_cert_sign=True, crl_sign=True), True),
        (ski, False),
        (x509.AuthorityKeyIdentifier.from_issuer_subject_key_identifier(ski), False),
    ]


def build_intermediate_extensions(public_key, issuer_certificate: x509.Certificate) -> ExtensionSet:
    """Extensions for an intermediate CA that may only sign end entities."""
    return [
        (x509.BasicConstraints(ca=True, path_length=0), True),
        (_key_usage(digital_signature=True, key_cert_sign=True, crl_sign=True), True),
        (x509.SubjectKeyIdentifier.from_public_key(public_key), False),
        (authority_key_identifier_from_certificate(issuer_certificate), False),
        (_extended_key_usage(), False),
    ]


def build_rsa_signed_extensions(public_key, issuer_certificate: x509.Certificate) -> ExtensionSet:
    """Extensions for the RSA cross-algorithm variant."""
    return [
        (x509.BasicConstraints(ca=True, path_length=0), True),
        (_key_usage(digital_signature=True, key_encipherment=True), True),
        (x509.SubjectKeyIdentifier.from_public_key(public_key), False),
        (authority_key_identifier_from_certificate(issuer_certificate), False),
        (_extended_key_usage(), False),
    ]


def build_leaf_extensions(public_key, subject_name: str, alternate_names: Iterable[str] = (),
                          issuer_certificate: Optional[x509.Certificate] = None) -> ExtensionSet:
    """
    Extensions for a server/client leaf certificate.

    Without an issuer the certificate is self-issued and its AKI mirrors its
    own SKI.
    """
    ski = x509.SubjectKeyIdentifier.from_public_key(public_key)
    if issuer_certificate is not None:
        aki = authority_key_identifier_from_certificate(issuer_certificate)
    else:
        aki = x509.AuthorityKeyIdentifier.from_issuer_subject_key_identifier(ski)

    return [
        (x509.BasicConstraints(ca=False, path_length=None), True),
        (_key_usage(digital_signature=True, key_encipherment=True), True),
        (build_subject_alternative_names(subject_name, alternate_names), False),
        (_extended_key_usage(), False),
        (ski, False),
        (aki, False),
    ]
