"""
Persisted Configuration

Key/value storage for the configuration read by external tools, plus the
fde-tools configuration object built on top of it.

Values are never cached: every read goes back to the store, so a read right
after a write tells whether the write really reached the file.
"""

import os
import re
import tempfile
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .config import FDE_DEVS_KEY, FDE_PBKDF_KEY, FDE_SYSCONFIG_FILE
from .encryption_types import PbkdFunction
from .logger import Logger


class ConfigStore(ABC):
    """
    Abstract key/value configuration section.

    Written values are staged and only reach the backing storage on commit().
    """

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        """
        Read the current value of a variable.

        Returns:
            The value, or None if the variable (or the whole section) is absent
        """
        pass

    @abstractmethod
    def write(self, key: str, value: str) -> bool:
        """Stage a new value for the variable"""
        pass

    @abstractmethod
    def commit(self) -> bool:
        """
        Flush all staged values.

        Returns:
            True if the section was written, False otherwise
        """
        pass


# KEY=value lines of a shell-style sysconfig file
_ASSIGNMENT = re.compile(r'^\s*([A-Za-z_][A-Za-z0-9_]*)=(.*)$')


class SysconfigFile(ConfigStore):
    """
    Shell-style configuration file (/etc/sysconfig/*).

    Comments and variables not touched through write() are preserved when
    the file is rewritten.
    """

    def __init__(self, path: str):
        self.path = path
        self._pending: Dict[str, str] = {}

    def read(self, key: str) -> Optional[str]:
        try:
            with open(self.path, encoding="utf-8") as f:
                lines = f.readlines()
        except OSError:
            return None

        value = None
        for line in lines:
            match = _ASSIGNMENT.match(line)
            if match and match.group(1) == key:
                value = self._unquote(match.group(2))
        return value

    def write(self, key: str, value: str) -> bool:
        self._pending[key] = value
        return True

    def commit(self) -> bool:
        if not self._pending:
            return True

        try:
            with open(self.path, encoding="utf-8") as f:
                lines = f.read().splitlines()
        except FileNotFoundError:
            lines = []
        except OSError as e:
            Logger.error(f"Cannot read {self.path}: {e}")
            return False

        pending = dict(self._pending)
        for index, line in enumerate(lines):
            match = _ASSIGNMENT.match(line)
            if match and match.group(1) in pending:
                key = match.group(1)
                lines[index] = self._assignment(key, pending.pop(key))
        lines.extend(self._assignment(key, value) for key, value in pending.items())

        if not self._write_atomic("\n".join(lines) + "\n"):
            return False

        self._pending.clear()
        return True

    def _write_atomic(self, content: str) -> bool:
        """Write to a temp file in the same directory, then rename it"""
        directory = os.path.dirname(self.path) or "."
        temp_path = None

        try:
            os.makedirs(directory, exist_ok=True)
            temp_fd, temp_path = tempfile.mkstemp(prefix=".sysconfig_", dir=directory)
            with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.path)
            temp_path = None
            Logger.debug("sysconfig", f"Written {self.path}")
            return True
        except OSError as e:
            Logger.error(f"Cannot write {self.path}: {e}")
            return False
        finally:
            if temp_path and os.path.exists(temp_path):
                os.unlink(temp_path)

    @staticmethod
    def _unquote(raw: str) -> str:
        value = raw.strip()
        if len(value) >= 2 and value[0] == value[-1] == '"':
            return value[1:-1].replace('\\"', '"').replace("\\\\", "\\")
        if len(value) >= 2 and value[0] == value[-1] == "'":
            return value[1:-1]
        return value

    @staticmethod
    def _assignment(key: str, value: str) -> str:
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'{key}="{escaped}"'


class FdeToolsConfig:
    """
    Configuration of fde-tools (the fdectl command).

    Only two variables are relevant here:
    - FDE_DEVS: space-separated list of devices fdectl operates on
    - FDE_LUKS_PBKDF: PBKDF used for the key slots added by fdectl
    """

    def __init__(self, store: ConfigStore):
        self.store = store

    @classmethod
    def for_root(cls, root: str = "/") -> "FdeToolsConfig":
        """Configuration of the system mounted at root"""
        return cls(SysconfigFile(os.path.join(root, FDE_SYSCONFIG_FILE)))

    @property
    def devices(self) -> List[str]:
        """Names of the devices configured for fde-tools"""
        value = self.store.read(FDE_DEVS_KEY)
        return value.split() if value else []

    @devices.setter
    def devices(self, names: List[str]) -> None:
        self._write(FDE_DEVS_KEY, " ".join(names))

    @property
    def pbkd_function(self) -> Optional[PbkdFunction]:
        """PBKDF configured for fde-tools, None if not set or unknown"""
        return PbkdFunction.find(self.store.read(FDE_PBKDF_KEY))

    @pbkd_function.setter
    def pbkd_function(self, function: Optional[PbkdFunction]) -> None:
        self._write(FDE_PBKDF_KEY, function.value if function else "")

    def _write(self, key: str, value: str) -> None:
        # Value first, then the whole section
        self.store.write(key, value)
        self.store.commit()
