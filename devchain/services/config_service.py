"""
Configuration service: reads the properties file into a validated Config.
"""
import os
import configparser
import ipaddress
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..models.config import Config, ConfigValidationError, ConfigValidationResult


def parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "yes", "1", "on", "enabled")


def parse_list(value: str) -> List[str]:
    """Split a comma or newline separated value, dropping blanks."""
    items = []
    for line in value.splitlines():
        items.extend(part.strip() for part in line.split(","))
    return [item for item in items if item]


def parse_optional(value: str) -> Optional[str]:
    return value or None


# "<section>.<key>" -> (Config field, parser)
CONFIG_KEYS: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    "certificates.directory": ("certificates_dir", str),
    "certificates.root_subject": ("root_subject", str),
    "certificates.intermediate_subject": ("intermediate_subject", str),
    "certificates.leaf_subject": ("leaf_subject", str),
    "certificates.root_file": ("root_file", str),
    "certificates.intermediate_file": ("intermediate_file", str),
    "certificates.leaf_file": ("leaf_file", str),
    "certificates.root_validity_days": ("root_validity_days", float),
    "certificates.intermediate_validity_days": ("intermediate_validity_days", float),
    "certificates.leaf_valid_days": ("leaf_valid_days", int),
    "certificates.leaf_alternate_names": ("leaf_alternate_names", parse_list),
    "certificates.pfx_password": ("pfx_password", parse_optional),
    "certificates.root_friendly_name": ("root_friendly_name", str),
    "certificates.intermediate_friendly_name": ("intermediate_friendly_name", str),
    "certificates.leaf_friendly_name": ("leaf_friendly_name", str),
    "trust_store.install": ("install_trust_store", parse_bool),
    "trust_store.directory": ("trust_store_dir", str),
    "trust_store.personal_directory": ("personal_store_dir", str),
    "trust_store.refresh_command": ("trust_store_refresh_command", str),
    "hosts.file_path": ("hosts_file_path", str),
    "hosts.domain": ("hosts_domain", str),
    "hosts.entries": ("hosts_entries", parse_list),
    "elevation.required": ("require_elevation", parse_bool),
    "app.log_level": ("log_level", lambda value: value.strip().upper()),
    "app.log_file_path": ("log_file_path", str),
}

DEFAULT_CONFIG_FILE = """# devchain configuration file

[certificates]
# directory = /tmp/development/certificates
root_subject = test-development-root
intermediate_subject = test-intermediate-signing
leaf_subject = *.site.test
root_file = test-root.pfx
intermediate_file = test-intermediate.pfx
leaf_file = test-wildcard.pfx
root_validity_days = 7305
intermediate_validity_days = 7305
leaf_valid_days = 365
# Extra SAN entries; IP literals become IP entries
leaf_alternate_names =
# Empty writes unencrypted archives
pfx_password =

[trust_store]
install = true
directory = /usr/local/share/ca-certificates/devchain
personal_directory = ~/.local/share/devchain/personal
refresh_command = update-ca-certificates

[hosts]
domain = site.test
entries =
    127.0.0.2 site.test
    127.0.0.2 www.site.test
    127.0.0.3 api.site.test
    127.0.0.2 sub.site.test
    127.0.0.2 sub2.site.test

[elevation]
required = true

[app]
log_level = INFO
log_file_path = logs/devchain.log
"""


class ConfigService:
    """Loads, validates and holds the provisioning configuration."""

    def __init__(self, config_path: Optional[str] = None):
        self.logger = logging.getLogger(__name__)
        self._config: Optional[Config] = None
        if config_path:
            self.load_config(config_path)

    def get_config(self) -> Config:
        """
        Raises:
            ValueError: If no configuration has been loaded or adopted yet
        """
        if self._config is None:
            raise ValueError("No configuration loaded. Call load_config() or use_defaults() first.")
        return self._config

    def use_defaults(self) -> Config:
        """Adopt the built-in defaults, validated like a loaded file."""
        return self.adopt_config(Config())

    def adopt_config(self, config: Config) -> Config:
        """
        Validate and store an already built configuration.

        Raises:
            ValueError: If the configuration has validation errors
        """
        self._check(config)
        self._config = config
        return config

    def load_config(self, config_path: str) -> Config:
        """
        Read a properties file; keys it omits keep their defaults.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file cannot be parsed, a value has the wrong
                type, or validation reports errors
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        values = self._read_properties(config_path)
        return self.adopt_config(self._build_config(values))

    def _check(self, config: Config) -> None:
        result = self.validate_config(config)
        if result.has_errors():
            raise ValueError(f"Configuration validation failed:\n{result.get_error_summary()}")
        if result.has_warnings():
            self.logger.warning(f"Configuration warnings:\n{result.get_error_summary()}")

    def _read_properties(self, config_path: str) -> Dict[str, str]:
        """Flatten the file into ``section.key`` names."""
        parser = configparser.ConfigParser(interpolation=None)
        try:
            parser.read(config_path, encoding='utf-8')
        except configparser.Error as e:
            raise ValueError(f"Failed to parse configuration file {config_path}: {e}")

        return {
            f"{section}.{key}": value
            for section in parser.sections()
            for key, value in parser.items(section)
        }

    def _build_config(self, values: Dict[str, str]) -> Config:
        kwargs = {}
        for name, raw_value in values.items():
            if name not in CONFIG_KEYS:
                self.logger.warning(f"Ignoring unknown configuration key: {name}")
                continue

            field_name, parse = CONFIG_KEYS[name]
            try:
                kwargs[field_name] = parse(raw_value)
            except (ValueError, TypeError) as e:
                raise ValueError(f"Invalid value for {name}: {raw_value!r} ({e})")

        return Config(**kwargs)

    def validate_config(self, config: Config) -> ConfigValidationResult:
        """Collect errors (which abort) and warnings (which are only logged)."""
        errors = self._name_errors(config) + self._hosts_errors(config)
        warnings = self._path_warnings(config)

        return ConfigValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings
        )

    def _name_errors(self, config: Config) -> List[ConfigValidationError]:
        errors = []
        for field_name in ("root_subject", "intermediate_subject", "leaf_subject"):
            if not getattr(config, field_name).strip():
                errors.append(ConfigValidationError(field_name, "Certificate subject name must not be blank"))

        for field_name in ("root_file", "intermediate_file", "leaf_file"):
            if not getattr(config, field_name).strip():
                errors.append(ConfigValidationError(field_name, "Certificate file name must not be blank"))
        return errors

    def _hosts_errors(self, config: Config) -> List[ConfigValidationError]:
        errors = []
        if not config.hosts_domain.strip():
            errors.append(ConfigValidationError(
                "hosts_domain",
                "Hosts block domain is required for the sentinel markers"
            ))

        for entry in config.hosts_entries:
            parts = entry.split()
            if len(parts) < 2:
                errors.append(ConfigValidationError(
                    "hosts_entries",
                    f"Hosts entry must be '<address> <hostname>': {entry!r}"
                ))
                continue
            try:
                ipaddress.ip_address(parts[0])
            except ValueError:
                errors.append(ConfigValidationError(
                    "hosts_entries",
                    f"Invalid address in hosts entry: {entry!r}"
                ))
        return errors

    def _path_warnings(self, config: Config) -> List[ConfigValidationError]:
        warnings = []
        if config.intermediate_validity_days > config.root_validity_days:
            warnings.append(ConfigValidationError(
                "intermediate_validity_days",
                "Intermediate validity exceeds the root's and will be clamped",
                "warning"
            ))

        directories = [("hosts_file_path", os.path.dirname(config.hosts_file_path))]
        if config.log_file_path:
            directories.append(("log_file_path", os.path.dirname(config.log_file_path)))

        for field_name, directory in directories:
            if directory and not os.path.exists(directory):
                warnings.append(ConfigValidationError(
                    field_name,
                    f"Directory does not exist: {directory}",
                    "warning"
                ))
        return warnings

    def create_default_config_file(self, config_path: str) -> None:
        """Write a commented configuration file holding the defaults."""
        config_dir = os.path.dirname(config_path)
        if config_dir:
            os.makedirs(config_dir, exist_ok=True)

        with open(config_path, 'w', encoding='utf-8') as f:
            f.write(DEFAULT_CONFIG_FILE)

        self.logger.info(f"Created default configuration file: {config_path}")
