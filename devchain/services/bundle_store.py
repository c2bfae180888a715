"""
Persistence of certificate bundles as .pfx/.crt/.key files.
"""
import logging
import os
from typing import List, Optional, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from ..models.certificate import ArtifactState, SignedCertificateBundle
from ..security.pkcs12_loader import export_pkcs12, load_pkcs12_bundle


def certificate_pem(certificate: x509.Certificate) -> bytes:
    return certificate.public_bytes(serialization.Encoding.PEM)


def private_key_pem(bundle: SignedCertificateBundle) -> bytes:
    """Unencrypted PKCS#8 PEM of the bundle's private key."""
    return bundle.private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def companion_path(pfx_path: str, extension: str) -> str:
    """Swap the archive's extension, e.g. test-root.pfx -> test-root.crt."""
    return os.path.splitext(pfx_path)[0] + extension


class BundleStore:
    """Writes and reads the files that make up one persisted certificate."""

    def __init__(self, directory: str, password: Optional[str] = None):
        self.directory = directory
        self.password = password
        self.logger = logging.getLogger(__name__)

    def ensure_directory(self) -> None:
        os.makedirs(self.directory, exist_ok=True)

    def state(self, pfx_path: str) -> ArtifactState:
        """
        Report whether the archive exists.

        Existence is the only check: the archive is not parsed, so a truncated
        file still reports PERSISTED.
        """
        if os.path.exists(pfx_path):
            return ArtifactState.PERSISTED
        return ArtifactState.NOT_CREATED

    def save(self, bundle: SignedCertificateBundle, pfx_path: str, write_key: bool = False) -> List[str]:
        """
        Persist a bundle.

        The .crt (and optional .key) files are written before the .pfx, so an
        existing archive implies its companions were written.

        Returns:
            The paths written, archive last
        """
        self.ensure_directory()
        pfx_bytes = export_pkcs12(bundle, self.password)
        written = []

        crt_path = companion_path(pfx_path, ".crt")
        self._write(crt_path, certificate_pem(bundle.certificate))
        written.append(crt_path)

        if write_key and bundle.has_private_key:
            key_path = companion_path(pfx_path, ".key")
            self._write(key_path, private_key_pem(bundle), private=True)
            written.append(key_path)

        self._write(pfx_path, pfx_bytes, private=bundle.has_private_key)
        written.append(pfx_path)

        self.logger.info(f"Saved '{bundle.subject.rfc4514_string()}' to {pfx_path}")
        return written

    def load(self, pfx_path: str) -> Tuple[SignedCertificateBundle, List[x509.Certificate]]:
        """Load an archive written by ``save``."""
        return load_pkcs12_bundle(pfx_path, self.password)

    def _write(self, path: str, data: bytes, private: bool = False) -> None:
        with open(path, 'wb') as f:
            f.write(data)
        if private and os.name == "posix":
            os.chmod(path, 0o600)
        self.logger.debug(f"Wrote {path}")
