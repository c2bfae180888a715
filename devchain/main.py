"""
Main entry point for devchain.
Ensures the root, intermediate and leaf certificates exist, installs them into
the trust store and maps the development domains in the hosts file.
"""

import os
import sys
import logging
from datetime import timedelta
from typing import Optional

from .errors import DevChainError, ElevationDeniedError, InvalidChainError
from .models.certificate import ArtifactState, SignedCertificateBundle, StoreName
from .models.config import Config
from .security.certificate_factory import CertificateFactory
from .security.security_service import SecurityService
from .services.bundle_store import BundleStore
from .services.config_service import ConfigService
from .services.elevation_service import ElevationService, ElevationToken
from .services.hosts_service import HostsFileService
from .services.logging_service import LoggingService
from .services.trust_store_service import TrustStoreService


class DevChainApplication:
    """Provisions the development certificate chain and hosts entries."""

    def __init__(self, config_path: Optional[str] = None, config: Optional[Config] = None):
        """
        Initialize the application.

        Args:
            config_path: Path to configuration file (optional)
            config: Ready-made configuration, takes precedence over ``config_path``
        """
        self.config_path = config_path or self._get_default_config_path()
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.config_service = None
        self.logging_service = None
        self.factory = None
        self.bundle_store = None
        self.trust_store = None
        self.hosts_service = None
        self.elevation_service = None
        self.security_service = None

    def _get_default_config_path(self) -> str:
        """Get the default configuration file path."""
        possible_paths = [
            "config/devchain.properties",
            "devchain.properties",
            os.path.expanduser("~/.devchain/config.properties"),
            "/etc/devchain/config.properties"
        ]

        for path in possible_paths:
            if os.path.exists(path):
                return path

        return possible_paths[0]

    def initialize(self) -> bool:
        """
        Load configuration, set up logging and wire the services.

        Returns:
            True if initialization successful, False otherwise
        """
        try:
            if not self._load_configuration():
                return False

            self.logging_service = LoggingService(self.config)
            self._initialize_services()
            self.logger.info("devchain initialized")
            return True

        except Exception as e:
            self.logger.error(f"Failed to initialize application: {str(e)}")
            return False

    def _load_configuration(self) -> bool:
        """Use the given configuration, the configuration file, or the defaults."""
        self.config_service = ConfigService()
        try:
            if self.config is not None:
                self.config_service.adopt_config(self.config)
            elif os.path.exists(self.config_path):
                self.logger.info(f"Loading configuration from: {self.config_path}")
                self.config = self.config_service.load_config(self.config_path)
            else:
                self.logger.info(f"No configuration file at {self.config_path}, using defaults")
                self.config = self.config_service.use_defaults()
            return True

        except (ValueError, OSError) as e:
            self.logger.error(f"Failed to load configuration: {str(e)}")
            return False

    def _initialize_services(self):
        self.factory = CertificateFactory()
        self.bundle_store = BundleStore(self.config.certificates_dir, self.config.pfx_password)
        self.trust_store = TrustStoreService(self.config)
        self.hosts_service = HostsFileService(
            self.config.hosts_file_path,
            self.config.hosts_domain,
            self.config.hosts_entries
        )
        self.elevation_service = ElevationService(required=self.config.require_elevation)
        self.security_service = SecurityService()

    def run(self) -> int:
        """
        Perform the whole provisioning sequence.

        Returns:
            Process exit code: 0 on success, 1 on the first failing step
        """
        try:
            token = self.elevation_service.ensure_elevated()
        except ElevationDeniedError as e:
            self.logging_service.record_error(e, 'elevation')
            self.logger.critical("Must be an administrator to install certificates")
            return 1

        steps = [
            ("root", self.ensure_root),
            ("intermediate", self.ensure_intermediate),
            ("leaf", self.ensure_leaf),
            ("verify_chain", self.verify_chain),
            ("hosts", self.update_hosts),
        ]

        for step_name, step in steps:
            try:
                with self.logging_service.step(step_name):
                    step(token)
            except (DevChainError, OSError) as e:
                self.logging_service.record_error(e, step_name)
                self.logger.error(f"Step '{step_name}' failed, remaining steps skipped")
                return 1

        return 0

    def ensure_root(self, token: ElevationToken) -> Optional[SignedCertificateBundle]:
        """Create and install the root CA unless its archive exists."""
        path = self.config.root_path
        if self.bundle_store.state(path) == ArtifactState.PERSISTED:
            self.logger.info(f"Root certificate already exists: {path}")
            return None

        self.logger.info(f"Creating root certificate {path}")
        root = self.factory.create_root_ca(
            self.config.root_subject,
            timedelta(days=self.config.root_validity_days),
            friendly_name=self.config.root_friendly_name
        )
        self.bundle_store.save(root, path)
        self._install(root, StoreName.ROOT, token)
        return root

    def ensure_intermediate(self, token: ElevationToken) -> Optional[SignedCertificateBundle]:
        """Create the intermediate CA from the persisted root unless its archive exists."""
        path = self.config.intermediate_path
        if self.bundle_store.state(path) == ArtifactState.PERSISTED:
            self.logger.info(f"Intermediate certificate already exists: {path}")
            return None

        self.logger.info(f"Creating intermediate certificate {path}")
        root, _ = self.bundle_store.load(self.config.root_path)
        intermediate = self.factory.create_intermediate_ca(
            self.config.intermediate_subject,
            root,
            timedelta(days=self.config.intermediate_validity_days),
            friendly_name=self.config.intermediate_friendly_name
        )
        self.bundle_store.save(intermediate, path)
        self._install(intermediate, StoreName.CERTIFICATE_AUTHORITY, token)
        return intermediate

    def ensure_leaf(self, token: ElevationToken) -> Optional[SignedCertificateBundle]:
        """Create the wildcard server certificate from the persisted intermediate unless its archive exists."""
        path = self.config.leaf_path
        if self.bundle_store.state(path) == ArtifactState.PERSISTED:
            self.logger.info(f"Leaf certificate already exists: {path}")
            return None

        self.logger.info(f"Creating test wildcard certificate {path}")
        intermediate, _ = self.bundle_store.load(self.config.intermediate_path)
        leaf = self.factory.create_leaf(
            self.config.leaf_subject,
            intermediate,
            self.config.leaf_valid_days,
            self.config.leaf_alternate_names,
            friendly_name=self.config.leaf_friendly_name
        )
        self.bundle_store.save(leaf, path, write_key=True)

        # Install the persisted copy so the store holds exactly what is on disk
        persisted_leaf, _ = self.bundle_store.load(path)
        self._install(persisted_leaf, StoreName.MY, token)
        return leaf

    def verify_chain(self, token: ElevationToken) -> None:
        """Verify the persisted root -> intermediate -> leaf chain."""
        chain = [
            self.bundle_store.load(path)[0].certificate
            for path in (self.config.root_path, self.config.intermediate_path, self.config.leaf_path)
        ]
        result = self.security_service.verify_chain(chain)
        if not result.is_valid:
            raise InvalidChainError(f"Persisted certificate chain is invalid:\n{result.get_error_summary()}")

    def update_hosts(self, token: ElevationToken) -> str:
        return self.hosts_service.update(token)

    def _install(self, bundle: SignedCertificateBundle, store: StoreName, token: ElevationToken) -> None:
        if not self.config.install_trust_store:
            self.logger.info(f"Trust store installation disabled, not installing into {store.name}")
            return
        self.trust_store.install(bundle, store, token)

    def get_status(self) -> dict:
        """Report the persistence state of each artifact."""
        return {
            'config_path': self.config_path,
            'certificates_dir': self.config.certificates_dir if self.config else None,
            'root': self.bundle_store.state(self.config.root_path).value if self.bundle_store else None,
            'intermediate': self.bundle_store.state(self.config.intermediate_path).value if self.bundle_store else None,
            'leaf': self.bundle_store.state(self.config.leaf_path).value if self.bundle_store else None,
            'hosts_file_path': self.config.hosts_file_path if self.config else None,
        }

    def shutdown(self):
        if self.logging_service:
            self.logging_service.close()


def main():
    """Main entry point for the application."""
    import argparse

    parser = argparse.ArgumentParser(description='Provision the local development certificate chain')
    parser.add_argument('--config', '-c', help='Configuration file path')
    parser.add_argument('--check-config', action='store_true', help='Check configuration and exit')
    parser.add_argument('--write-default-config', metavar='PATH', help='Write a default configuration file and exit')

    args = parser.parse_args()

    if args.write_default_config:
        ConfigService().create_default_config_file(args.write_default_config)
        print(f"Default configuration written to {args.write_default_config}")
        sys.exit(0)

    app = DevChainApplication(config_path=args.config)

    if not app.initialize():
        print("Failed to initialize application")
        sys.exit(1)

    if args.check_config:
        print("Configuration check passed")
        for key, value in app.get_status().items():
            print(f"{key}: {value}")
        sys.exit(0)

    try:
        exit_code = app.run()
    finally:
        app.shutdown()
    sys.exit(exit_code)


if __name__ == '__main__':
    main()
