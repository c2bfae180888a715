"""
Security package: key generation, extensions, validity policy and certificate issuance.
"""
from .models import CertificateInfo, ChainValidationResult
from .certificate_factory import CertificateFactory, build_distinguished_name
from .pkcs12_loader import export_pkcs12, load_pkcs12_bundle, parse_pkcs12
from .security_service import SecurityService

__all__ = [
    'CertificateInfo',
    'ChainValidationResult',
    'CertificateFactory',
    'build_distinguished_name',
    'export_pkcs12',
    'load_pkcs12_bundle',
    'parse_pkcs12',
    'SecurityService'
]
