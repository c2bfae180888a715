"""
Exception hierarchy for certificate chain provisioning.
"""


class DevChainError(Exception):
    """Base class for all devchain errors."""


class InvalidArgumentError(DevChainError, ValueError):
    """Raised when a caller supplies an unusable argument."""


class EmptySubjectNameError(InvalidArgumentError):
    """Raised when a certificate subject name is blank."""


class IssuerLacksPrivateKeyError(DevChainError, ValueError):
    """Raised when an issuer bundle cannot sign because it has no private key."""


class InvalidValidityWindowError(DevChainError, ValueError):
    """Raised when a (clamped) validity window is inverted or empty."""


class BundleNotFoundError(DevChainError, FileNotFoundError):
    """Raised when a PKCS#12 bundle file does not exist."""


class EmptyOrMalformedBundleError(DevChainError, ValueError):
    """Raised when a PKCS#12 bundle holds no certificate with a private key."""


class UnsupportedAlgorithmError(DevChainError, ValueError):
    """Raised for key algorithms other than EC P-256 and RSA-2048."""


class ElevationDeniedError(DevChainError, PermissionError):
    """Raised when administrator/root privileges cannot be obtained."""


class InvalidChainError(DevChainError):
    """Raised when the persisted chain fails link-by-link verification."""
