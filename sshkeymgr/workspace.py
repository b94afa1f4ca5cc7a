"""
Per-run scratch area: private copies of keys for probing, and the original
permissions of every file the run touches.
"""

import logging
import os
import shutil
import stat
import tempfile
from pathlib import Path
from typing import Dict, List

logger = logging.getLogger(__name__)

ARTIFACT_PERMISSIONS = 0o600  # ssh-keygen refuses keys readable by others


class Workspace:
    """
    Owns every temporary file a run creates.

    cleanup() removes the temporary directory and, unless the run reached
    mark_permissions_applied(), restores the recorded permissions. It is safe
    to call more than once. Use as a context manager.
    """

    def __init__(self, prefix: str = "ssh-key-manager-"):
        self._prefix = prefix
        self._tmpdir = None
        self._copies: Dict[Path, Path] = {}
        self._artifacts: List[Path] = []
        self.snapshots: Dict[Path, int] = {}
        self.permissions_applied = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.cleanup()
        return False

    @property
    def directory(self) -> Path:
        if self._tmpdir is None:
            # mkdtemp creates the directory with mode 0700
            self._tmpdir = Path(tempfile.mkdtemp(prefix=self._prefix))
        return self._tmpdir

    def _new_file(self, suffix: str = "") -> Path:
        fd, name = tempfile.mkstemp(dir=self.directory, suffix=suffix)
        os.close(fd)
        path = Path(name)
        os.chmod(path, ARTIFACT_PERMISSIONS)
        self._artifacts.append(path)
        return path

    def private_copy(self, source: Path) -> Path:
        """Owner-only copy of a key file; one copy per source per run."""
        source = Path(source)
        if source not in self._copies:
            copy = self._new_file()
            shutil.copyfile(source, copy)
            os.chmod(copy, ARTIFACT_PERMISSIONS)
            self._copies[source] = copy
        return self._copies[source]

    def write_artifact(self, text: str, suffix: str = "") -> Path:
        """Scratch file holding text (e.g. a derived public key)."""
        path = self._new_file(suffix)
        path.write_text(text if text.endswith("\n") else text + "\n")
        return path

    def snapshot(self, path: Path) -> None:
        """Remember a file's permission bits the first time it is touched."""
        path = Path(path)
        if path in self.snapshots:
            return
        try:
            self.snapshots[path] = stat.S_IMODE(os.stat(path).st_mode)
        except OSError as e:
            logger.debug("Cannot snapshot %s: %s", path, e)

    def mark_permissions_applied(self) -> None:
        self.permissions_applied = True

    @property
    def artifacts(self) -> List[Path]:
        return list(self._artifacts)

    def cleanup(self) -> None:
        for artifact in self._artifacts:
            try:
                artifact.unlink()
            except FileNotFoundError:
                pass
        self._artifacts.clear()
        self._copies.clear()

        if self._tmpdir is not None:
            shutil.rmtree(self._tmpdir, ignore_errors=True)
            self._tmpdir = None

        if not self.permissions_applied:
            for path, mode in self.snapshots.items():
                try:
                    os.chmod(path, mode)
                except OSError as e:
                    logger.warning("Could not restore permissions on %s: %s", path, e)
        self.snapshots.clear()
