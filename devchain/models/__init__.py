"""
Models package for the devchain provisioning tool.
"""

from .certificate import (
    KeyAlgorithm,
    StoreName,
    ArtifactState,
    ValidityWindow,
    SignedCertificateBundle,
)
from .config import Config, ConfigValidationError, ConfigValidationResult

__all__ = [
    'KeyAlgorithm',
    'StoreName',
    'ArtifactState',
    'ValidityWindow',
    'SignedCertificateBundle',
    'Config',
    'ConfigValidationError',
    'ConfigValidationResult'
]
