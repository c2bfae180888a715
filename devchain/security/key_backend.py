"""
Key pair generation and issuer-bound signing.
"""
import logging
from typing import Optional, Union

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa

from ..errors import UnsupportedAlgorithmError
from ..models.certificate import KeyAlgorithm

logger = logging.getLogger(__name__)

EC_CURVE = ec.SECP256R1
RSA_KEY_SIZE = 2048
RSA_PUBLIC_EXPONENT = 65537

PrivateKey = Union[ec.EllipticCurvePrivateKey, rsa.RSAPrivateKey]


def generate_key_pair(algorithm: KeyAlgorithm = KeyAlgorithm.EC_P256,
                      key_size: Optional[int] = None) -> PrivateKey:
    """
    Generate a fresh private key.

    Args:
        algorithm: Key algorithm, EC P-256 by default
        key_size: Optional explicit size; must match the algorithm (256 or 2048)

    Returns:
        The private key; the public half is available via ``public_key()``

    Raises:
        UnsupportedAlgorithmError: For any other algorithm or size
    """
    if algorithm == KeyAlgorithm.EC_P256:
        if key_size not in (None, 256):
            raise UnsupportedAlgorithmError(f"EC keys are only supported on P-256, not {key_size} bits")
        logger.debug("Generating EC P-256 key pair")
        return ec.generate_private_key(EC_CURVE())

    if algorithm == KeyAlgorithm.RSA_2048:
        if key_size not in (None, RSA_KEY_SIZE):
            raise UnsupportedAlgorithmError(f"RSA keys are only supported at 2048 bits, not {key_size}")
        logger.debug("Generating RSA-2048 key pair")
        return rsa.generate_private_key(
            public_exponent=RSA_PUBLIC_EXPONENT,
            key_size=RSA_KEY_SIZE,
        )

    raise UnsupportedAlgorithmError(f"Unsupported key algorithm: {algorithm!r}")


def key_algorithm_of(key) -> KeyAlgorithm:
    """Classify a private or public key."""
    if isinstance(key, (ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey)):
        if not isinstance(key.curve, EC_CURVE):
            raise UnsupportedAlgorithmError(f"Unsupported EC curve: {key.curve.name}")
        return KeyAlgorithm.EC_P256
    if isinstance(key, (rsa.RSAPrivateKey, rsa.RSAPublicKey)):
        return KeyAlgorithm.RSA_2048
    raise UnsupportedAlgorithmError(f"Unsupported key type: {type(key).__name__}")


class ECSigner:
    """ECDSA-SHA256 signer bound to an issuer's EC private key."""

    algorithm = KeyAlgorithm.EC_P256

    def __init__(self, private_key: ec.EllipticCurvePrivateKey):
        self._private_key = private_key

    def sign(self, data: bytes) -> bytes:
        return self._private_key.sign(data, ec.ECDSA(hashes.SHA256()))

    def sign_certificate(self, builder: x509.CertificateBuilder) -> x509.Certificate:
        return builder.sign(private_key=self._private_key, algorithm=hashes.SHA256())


class RSASigner:
    """RSA PKCS#1 v1.5 SHA256 signer bound to an issuer's RSA private key."""

    algorithm = KeyAlgorithm.RSA_2048

    def __init__(self, private_key: rsa.RSAPrivateKey):
        self._private_key = private_key

    def sign(self, data: bytes) -> bytes:
        return self._private_key.sign(data, padding.PKCS1v15(), hashes.SHA256())

    def sign_certificate(self, builder: x509.CertificateBuilder) -> x509.Certificate:
        return builder.sign(
            private_key=self._private_key,
            algorithm=hashes.SHA256(),
            rsa_padding=padding.PKCS1v15(),
        )


Signer = Union[ECSigner, RSASigner]


def select_signer(issuer_private_key: PrivateKey) -> Signer:
    """
    Pick the signer variant from the issuer's key algorithm.

    The subject's key algorithm plays no part: an RSA subject may be signed
    by an EC issuer and the other way round.
    """
    algorithm = key_algorithm_of(issuer_private_key)
    if algorithm == KeyAlgorithm.EC_P256:
        return ECSigner(issuer_private_key)
    return RSASigner(issuer_private_key)


def sign(issuer_private_key: PrivateKey, data: bytes) -> bytes:
    """Produce a detached signature over ``data`` with the issuer's key."""
    return select_signer(issuer_private_key).sign(data)
