"""Ephemeral OpenVPN credentials file."""

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .exceptions import CredentialIOError
from .models import Credential
from ..logging_utility import logger


class CredentialStore:
    """Owns the single auth-user-pass file handed to the VPN client."""

    def __init__(self, path: Path, permissions: int = 0o400):
        self.path = Path(path)
        self.permissions = permissions

    def save(self, credential: Credential) -> Path:
        """
        Atomically write the credential, replacing any previous content.

        Returns:
            Path of the written file
        """
        directory = self.path.parent
        tmp_path = None
        try:
            directory.mkdir(mode=0o700, parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=directory)
            with os.fdopen(fd, "w") as f:
                f.write(credential.serialize())
                f.flush()
                os.fchmod(f.fileno(), self.permissions)
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path is not None:
                self._remove(Path(tmp_path), strict=False)
            self._remove(self.path, strict=False)
            raise CredentialIOError(f"Could not write credentials file {self.path}: {e}")

        logger.info(f"Credentials written to {self.path}")
        return self.path

    def clear(self) -> None:
        """Delete the credentials file. A missing file is not an error."""
        self._remove(self.path, strict=True)

    @staticmethod
    def _remove(path: Path, strict: bool) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            if strict:
                raise CredentialIOError(f"Could not remove credentials file {path}: {e}")
            logger.warning(f"Could not remove temporary file {path}: {e}")
            return
        logger.info(f"Removed {path}")

    @contextmanager
    def session(self, credential: Credential) -> Iterator[Path]:
        """Keep the credentials file on disk only for the duration of the block."""
        path = self.save(credential)
        try:
            yield path
        finally:
            self.clear()
