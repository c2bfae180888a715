"""
Directory-backed trust store with insert-or-replace by subject name.
"""
import logging
import os
import re
import shlex
import subprocess
from typing import List, Optional

from cryptography import x509
from cryptography.hazmat.primitives.serialization import pkcs12

from ..models.certificate import SignedCertificateBundle, StoreName
from ..security.pkcs12_loader import export_pkcs12
from .bundle_store import certificate_pem
from .elevation_service import ElevationToken, require_token

ANCHOR_STORES = (StoreName.ROOT, StoreName.CERTIFICATE_AUTHORITY)


def store_file_stem(subject: x509.Name) -> str:
    """File name stem for a subject, e.g. CN=*.site.test -> wildcard.site.test."""
    common_names = subject.get_attributes_for_oid(x509.NameOID.COMMON_NAME)
    value = common_names[0].value if common_names else subject.rfc4514_string()
    value = value.replace("*", "wildcard")
    return re.sub(r"[^A-Za-z0-9._-]+", "_", value).strip("_") or "certificate"


class TrustStoreService:
    """Installs certificates into the root, intermediate and personal stores."""

    def __init__(self, config):
        self.config = config
        self.logger = logging.getLogger(__name__)

    def store_directory(self, store: StoreName) -> str:
        if store == StoreName.MY:
            return os.path.expanduser(self.config.personal_store_dir)
        return os.path.join(os.path.expanduser(self.config.trust_store_dir), store.value)

    def install(self, bundle: SignedCertificateBundle, store: StoreName, token: ElevationToken) -> str:
        """
        Insert ``bundle`` into ``store``, removing entries with the same subject first.

        Returns:
            Path of the installed entry
        """
        require_token(token)
        directory = self.store_directory(store)
        os.makedirs(directory, exist_ok=True)

        removed = self.remove_subject(bundle.subject, store)
        if removed:
            self.logger.info(f"Replaced {len(removed)} existing entr(y/ies) for '{bundle.subject.rfc4514_string()}'")

        stem = store_file_stem(bundle.subject)
        if store == StoreName.MY and bundle.has_private_key:
            path = os.path.join(directory, f"{stem}.pfx")
            data = export_pkcs12(bundle, self.config.pfx_password)
        else:
            path = os.path.join(directory, f"{stem}.crt")
            data = certificate_pem(bundle.certificate)

        with open(path, 'wb') as f:
            f.write(data)
        if store == StoreName.MY and os.name == "posix":
            os.chmod(path, 0o600)

        self.logger.info(f"Installed '{bundle.subject.rfc4514_string()}' into {store.name} store: {path}")

        if store in ANCHOR_STORES:
            self.refresh()
        return path

    def find_by_subject(self, subject: x509.Name, store: StoreName) -> List[str]:
        """Paths in ``store`` whose certificate subject equals ``subject``."""
        directory = self.store_directory(store)
        if not os.path.isdir(directory):
            return []

        matches = []
        for filename in sorted(os.listdir(directory)):
            path = os.path.join(directory, filename)
            certificate = self._read_entry(path)
            if certificate is not None and certificate.subject == subject:
                matches.append(path)
        return matches

    def remove_subject(self, subject: x509.Name, store: StoreName) -> List[str]:
        removed = self.find_by_subject(subject, store)
        for path in removed:
            os.remove(path)
            self.logger.debug(f"Removed trust store entry {path}")
        return removed

    def refresh(self) -> Optional[int]:
        """Run the configured trust store refresh command, if any."""
        command = self.config.trust_store_refresh_command
        if not command:
            return None

        try:
            result = subprocess.run(shlex.split(command), capture_output=True, text=True)
        except OSError as e:
            self.logger.warning(f"Trust store refresh command '{command}' could not run: {e}")
            return None

        if result.returncode != 0:
            self.logger.warning(
                f"Trust store refresh command '{command}' exited with {result.returncode}: {result.stderr.strip()}"
            )
        else:
            self.logger.info(f"Trust store refreshed with '{command}'")
        return result.returncode

    def _read_entry(self, path: str) -> Optional[x509.Certificate]:
        if path.endswith(".crt"):
            with open(path, 'rb') as f:
                data = f.read()
            try:
                return x509.load_pem_x509_certificate(data)
            except ValueError:
                self.logger.debug(f"Skipping unreadable certificate {path}")
                return None

        if path.endswith(".pfx"):
            with open(path, 'rb') as f:
                data = f.read()
            password = self.config.pfx_password
            try:
                archive = pkcs12.load_pkcs12(data, password.encode("utf-8") if password else None)
            except ValueError:
                self.logger.debug(f"Skipping unreadable archive {path}")
                return None
            return archive.cert.certificate if archive.cert is not None else None

        return None
