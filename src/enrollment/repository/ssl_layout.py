"""On-disk layout of the SSL directory, matching what the puppet agent writes.

    <ssl_root>/
        public_keys/<name>.pem
        private_keys/<name>.pem
        certificate_requests/<name>.pem
        certs/<name>.pem
        certs/ca.pem
        crl.pem
"""

import logging
import os
from pathlib import Path

from enrollment.domain.errors import ArtifactIOError
from enrollment.domain.models import check_cert_name

logger = logging.getLogger(__name__)

PRIVATE_KEY_MODE = 0o600
PUBLIC_FILE_MODE = 0o644


class SSLLayout:
    """Derives artifact paths for one certificate name and writes to them.

    Filesystem failures surface as ArtifactIOError, except the FileExistsError
    that write_new_artifact uses to report an occupied path.
    """

    PUBLIC_KEYS_DIR = "public_keys"
    PRIVATE_KEYS_DIR = "private_keys"
    CSR_DIR = "certificate_requests"
    CERTS_DIR = "certs"
    CA_CERT_FILE = "ca.pem"
    CRL_FILE = "crl.pem"

    def __init__(self, ssl_root: Path | str, cert_name: str) -> None:
        self.ssl_root = Path(ssl_root)
        self.cert_name = check_cert_name(cert_name)

    def _named(self, directory: str) -> Path:
        return self.ssl_root / directory / f"{self.cert_name}.pem"

    @property
    def public_key_path(self) -> Path:
        return self._named(self.PUBLIC_KEYS_DIR)

    @property
    def private_key_path(self) -> Path:
        return self._named(self.PRIVATE_KEYS_DIR)

    @property
    def csr_path(self) -> Path:
        return self._named(self.CSR_DIR)

    @property
    def certificate_path(self) -> Path:
        return self._named(self.CERTS_DIR)

    @property
    def ca_certificate_path(self) -> Path:
        return self.ssl_root / self.CERTS_DIR / self.CA_CERT_FILE

    @property
    def crl_path(self) -> Path:
        return self.ssl_root / self.CRL_FILE

    @property
    def directories(self) -> list[Path]:
        return [
            self.ssl_root,
            self.ssl_root / self.PUBLIC_KEYS_DIR,
            self.ssl_root / self.PRIVATE_KEYS_DIR,
            self.ssl_root / self.CSR_DIR,
            self.ssl_root / self.CERTS_DIR,
        ]

    def ensure_directories(self) -> None:
        """Create the SSL root and its sub-directories. Safe to call repeatedly."""
        for directory in self.directories:
            self._make_directory(directory)

    def _make_directory(self, directory: Path) -> None:
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArtifactIOError("create directory", directory, e) from e

    def key_artifacts(self) -> list[tuple[str, Path]]:
        """Files that must not exist before key generation, in check order."""
        return [
            ("private key", self.private_key_path),
            ("public key", self.public_key_path),
            ("certificate request", self.csr_path),
        ]

    def existing_key_artifacts(self) -> list[tuple[str, Path]]:
        found = []
        for kind, path in self.key_artifacts():
            try:
                if path.exists():
                    found.append((kind, path))
            except OSError as e:
                raise ArtifactIOError("inspect", path, e) from e
        return found

    def read_artifact(self, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as e:
            raise ArtifactIOError("read", path, e) from e

    def write_artifact(self, path: Path, data: bytes, mode: int = PUBLIC_FILE_MODE) -> None:
        """Write a file, replacing whatever is there."""
        self._make_directory(path.parent)
        try:
            path.write_bytes(data)
            os.chmod(path, mode)
        except OSError as e:
            raise ArtifactIOError("write", path, e) from e
        logger.debug("Wrote %s", path, extra={"path": str(path), "bytes": len(data)})

    def write_new_artifact(self, path: Path, data: bytes, mode: int = PUBLIC_FILE_MODE) -> None:
        """Write a file that must not exist yet.

        Raises:
            FileExistsError: If something already occupies the path.
            ArtifactIOError: For any other filesystem failure.
        """
        self._make_directory(path.parent)
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, mode)
            with os.fdopen(fd, "wb") as f:
                f.write(data)
        except FileExistsError:
            raise
        except OSError as e:
            raise ArtifactIOError("write", path, e) from e
        logger.debug("Created %s", path, extra={"path": str(path), "bytes": len(data)})
