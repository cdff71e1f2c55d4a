"""
Materialising the ConfigMaps as files in a directory.

Every key of a ConfigMap becomes a file with the same name in the base
directory. The files are only written if their content on disk differs
from the ConfigMap's value, as verified by the checksums -- so that
the dependent process is only bumped when something has actually changed.

All the watched ConfigMaps share the same directory. If two of them
have the same keys, the last reconciled one wins; this is not detected.
"""
import base64
import binascii
import dataclasses
import hashlib
import logging
import os
from typing import Dict, Optional

from cmbump.engines import bumping
from cmbump.errors import InitError, OperatorError, SignalError
from cmbump.structs import bodies, configuration

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class ConfigFile:
    content: bytes
    digest: str  # sha1 hexdigest of the content


ConfigFiles = Dict[str, ConfigFile]


def compute_digest(content: bytes) -> str:
    return hashlib.sha1(content).hexdigest()


class ConfigUpdater:
    """
    A reconciler of the ConfigMaps to the files in the base directory.

    The files are prepared once per received version of a ConfigMap,
    and then compared to the previous version and to the actual files on disk.
    """

    def __init__(
            self,
            base_dir: str,
            bumper: Optional[bumping.Bumper] = None,
            *,
            settings: Optional[configuration.OperatorSettings] = None,
    ) -> None:
        super().__init__()
        if not os.path.exists(base_dir):
            raise InitError(f"The base directory {base_dir!r} does not exist.")
        if not os.path.isdir(base_dir):
            raise InitError(f"The base directory {base_dir!r} is not a directory.")
        if not os.access(base_dir, os.W_OK):
            raise InitError(f"The base directory {base_dir!r} is not writable.")
        self.base_dir = base_dir
        self.bumper = bumper
        self.settings = settings if settings is not None else configuration.OperatorSettings()

    def _path(self, name: str) -> str:
        return os.path.join(self.base_dir, name)

    def prepare(self, body: bodies.RawBody) -> ConfigFiles:
        """
        Convert a ConfigMap to the files' contents and checksums.

        No filesystem access happens here: only the in-memory transformation.
        """
        files: ConfigFiles = {}

        for name, encoded in (body.get('binaryData') or {}).items():
            try:
                content = base64.b64decode(encoded, validate=True)
            except (binascii.Error, ValueError) as e:
                logger.warning(f"Skipping the binary file {name!r}: cannot decode it: {e}")
                continue
            files[name] = ConfigFile(content=content, digest=compute_digest(content))

        for name, text in (body.get('data') or {}).items():
            if name in files:
                logger.warning(f"The file {name!r} is both in data & binaryData; using the data.")
            content = (text or '').encode('utf-8')
            files[name] = ConfigFile(content=content, digest=compute_digest(content))

        return files

    def reconcile(
            self,
            old: Optional[ConfigFiles],
            new: Optional[ConfigFiles],
    ) -> None:
        """
        Bring the files on disk from the old state to the new state.

        ``old=None`` means a newly seen ConfigMap, ``new=None`` means a deleted one.
        The individual file failures are logged, and the other files are still
        processed. Only the bumping failures are raised (as `OperatorError`).
        """
        changed = False
        if new is None:
            changed = self._remove_files(old or {}, keep={})
            changed = changed and self.settings.bumping.on_deletion
        else:
            changed |= self._remove_files(old or {}, keep=new)
            changed |= self._write_files(new)

        if changed and self.bumper is not None:
            try:
                self.bumper.bump()
            except SignalError as e:
                raise OperatorError(f"Failed to bump the process: {e}") from e

    def _remove_files(self, files: ConfigFiles, *, keep: ConfigFiles) -> bool:
        removed = False
        for name in files:
            if name in keep:
                continue
            path = self._path(name)
            logger.debug(f"Removing the config file {path!r}.")
            try:
                os.remove(path)
            except FileNotFoundError:
                logger.debug(f"The config file {path!r} is already absent.")
            except OSError as e:
                logger.error(f"Failed to remove the no longer needed config file {path!r}: {e}")
            else:
                logger.info(f"Removed the config file {path!r}.")
                removed = True
        return removed

    def _write_files(self, files: ConfigFiles) -> bool:
        written = False
        for name, file in files.items():
            path = self._path(name)
            if os.path.exists(path):
                try:
                    with open(path, 'rb') as f:
                        digest = compute_digest(f.read())
                except OSError as e:
                    logger.warning(f"Overwriting the config file {path!r}: cannot verify it: {e}")
                else:
                    if digest == file.digest:
                        logger.debug(f"The config file {path!r} is unchanged. Skipping.")
                        continue

            try:
                with open(path, 'wb') as f:
                    f.write(file.content)
            except OSError as e:
                logger.error(f"Failed to write the config file {path!r}: {e}")
            else:
                logger.info(f"Updated the config file {path!r}.")
                written = True
        return written
