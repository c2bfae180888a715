"""
Services package for the devchain provisioning tool.
"""

from .config_service import ConfigService
from .logging_service import LoggingService
from .bundle_store import BundleStore
from .elevation_service import ElevationService, ElevationToken
from .trust_store_service import TrustStoreService
from .hosts_service import HostsFileService

__all__ = [
    'ConfigService',
    'LoggingService',
    'BundleStore',
    'ElevationService',
    'ElevationToken',
    'TrustStoreService',
    'HostsFileService'
]
