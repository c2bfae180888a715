"""
Configuration data models for the development certificate chain.
"""
import os
import sys
import tempfile
from dataclasses import dataclass, field
from typing import List, Optional


def default_certificates_dir() -> str:
    """Default certificate directory: <tempdir>/development/certificates."""
    return os.path.join(tempfile.gettempdir(), "development", "certificates")


def default_hosts_file_path() -> str:
    """Return the platform hosts file location."""
    if sys.platform == "win32":
        system_root = os.environ.get("SystemRoot", r"C:\Windows")
        return os.path.join(system_root, "System32", "drivers", "etc", "hosts")
    return "/etc/hosts"


DEFAULT_HOSTS_ENTRIES = [
    "127.0.0.2 site.test",
    "127.0.0.2 www.site.test",
    "127.0.0.3 api.site.test",
    "127.0.0.2 sub.site.test",
    "127.0.0.2 sub2.site.test",
]


@dataclass
class Config:
    """Main configuration class containing all provisioning settings."""

    # Certificate settings
    certificates_dir: str = field(default_factory=default_certificates_dir)
    root_subject: str = "test-development-root"
    intermediate_subject: str = "test-intermediate-signing"
    leaf_subject: str = "*.site.test"
    root_file: str = "test-root.pfx"
    intermediate_file: str = "test-intermediate.pfx"
    leaf_file: str = "test-wildcard.pfx"
    root_validity_days: float = 365.25 * 20
    intermediate_validity_days: float = 365.25 * 20
    leaf_valid_days: int = 365
    leaf_alternate_names: List[str] = field(default_factory=list)
    pfx_password: Optional[str] = None
    root_friendly_name: str = "Local Development Root Certificate"
    intermediate_friendly_name: str = "Local Development Intermediate Certificate"
    leaf_friendly_name: str = "Local Development Wildcard Certificate"

    # Trust store settings
    install_trust_store: bool = True
    trust_store_dir: str = "/usr/local/share/ca-certificates/devchain"
    personal_store_dir: str = "~/.local/share/devchain/personal"
    trust_store_refresh_command: str = "update-ca-certificates"

    # Hosts file settings
    hosts_file_path: str = field(default_factory=default_hosts_file_path)
    hosts_domain: str = "site.test"
    hosts_entries: List[str] = field(default_factory=lambda: list(DEFAULT_HOSTS_ENTRIES))

    # Elevation settings
    require_elevation: bool = True

    # Application settings
    log_level: str = "INFO"
    log_file_path: str = "logs/devchain.log"

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_types()

    def _validate_types(self):
        """Ensure all configuration values have correct types."""
        for name in ("root_validity_days", "intermediate_validity_days"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or value <= 0:
                raise ValueError(f"{name} must be a positive number")

        if not isinstance(self.leaf_valid_days, int) or self.leaf_valid_days <= 0:
            raise ValueError("leaf_valid_days must be a positive integer")

        if not isinstance(self.leaf_alternate_names, list):
            raise ValueError("leaf_alternate_names must be a list")

        if not isinstance(self.hosts_entries, list):
            raise ValueError("hosts_entries must be a list")

        if self.log_level not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            raise ValueError("log_level must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL")

    @property
    def root_path(self) -> str:
        return os.path.join(self.certificates_dir, self.root_file)

    @property
    def intermediate_path(self) -> str:
        return os.path.join(self.certificates_dir, self.intermediate_file)

    @property
    def leaf_path(self) -> str:
        return os.path.join(self.certificates_dir, self.leaf_file)


@dataclass
class ConfigValidationError:
    """One validation finding; ``severity`` is "error" or "warning"."""
    field: str
    message: str
    severity: str = "error"

    def __str__(self):
        return f"{self.severity.upper()}: {self.field} - {self.message}"


@dataclass
class ConfigValidationResult:
    """Validation findings, re-sorted by severity on construction."""
    is_valid: bool
    errors: List[ConfigValidationError]
    warnings: List[ConfigValidationError] = field(default_factory=list)

    def __post_init__(self):
        findings = self.errors + self.warnings
        self.errors = [f for f in findings if f.severity == "error"]
        self.warnings = [f for f in findings if f.severity == "warning"]

    def has_errors(self) -> bool:
        return bool(self.errors)

    def has_warnings(self) -> bool:
        return bool(self.warnings)

    def get_error_summary(self) -> str:
        """Errors first, then warnings, one per line."""
        if not self.errors and not self.warnings:
            return "Configuration is valid"

        lines = []
        for title, findings in (("Configuration Errors:", self.errors), ("Configuration Warnings:", self.warnings)):
            if findings:
                lines.append(title)
                lines.extend(f"  - {finding}" for finding in findings)
        return "\n".join(lines)
