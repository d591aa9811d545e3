"""
Secure AES Keys

Secure keys are AES keys wrapped by the master key of a Crypto Express
coprocessor. They are managed with the zkey tool, which keeps a repository
of keys and, for every key, the list of volumes encrypted with it.

Example of a "zkey list" record (records are separated by a blank line):

    Key                 : secure_xtskey1
    Description         :
    Secure key size     : 128 bytes
    XTS type key        : Yes
    Volumes             : /dev/dasdc1:cr_7
                          /dev/disk/by-id/ccw-0X0150-part1:cr_7
    Sector size         : 4096 bytes
    Volume type         : LUKS2
"""

import glob
import os
import re
import shutil
from typing import Iterable, List, Optional, Sequence, Union

from . import execute
from .apqn import Adapter
from .config import (
    LSZCRYPT, SECURE_KEY_BITS, SECURE_KEY_SECTOR_SIZE, ZKEY,
    ZKEY_REPOSITORY_DIR, ZKEY_REPOSITORY_ENV
)
from .devices import BlkDevice, Encryption
from .logger import Logger
from .volume import VolumeAssociation


# "online" as a whole word in the lszcrypt --verbose output
_ONLINE = re.compile(r'(?<!\S)online(?!\S)')

_VOLUMES_FIELD = re.compile(r'^\s*Volumes\s*:(.*)$')
_RECORD_SEPARATOR = re.compile(r'\n\s*\n')


class SecureKey:
    """
    Secure key registered (or about to be registered) in the zkey repository.

    Creating an object does not register anything, see generate().
    """

    def __init__(self, name: str, sector_size: Optional[int] = None,
                 apqns: Sequence[Adapter] = ()):
        """
        Args:
            name: Name of the key in the repository
            sector_size: Sector size in bytes, None for the system default
            apqns: APQNs to bind the key to when generating it
        """
        self.name = name
        self.sector_size = sector_size
        self.apqns = list(apqns)
        self._volumes: List[VolumeAssociation] = []

    # ========================================================================
    # Discovery
    # ========================================================================

    @staticmethod
    def available() -> bool:
        """
        Whether secure keys can be used in this system, i.e. there is at
        least one online crypto adapter.
        """
        result = execute.run(LSZCRYPT, "--verbose")
        if not result.ok:
            Logger.info("Secure keys not available: lszcrypt failed")
            return False
        return bool(_ONLINE.search(result.stdout))

    @classmethod
    def all_keys(cls) -> List["SecureKey"]:
        """All the keys in the repository, empty if zkey fails"""
        result = execute.run(ZKEY, "list")
        if not result.ok:
            Logger.info(f"Cannot list secure keys: {result.stderr.strip()}")
            return []
        return cls.parse_list(result.stdout)

    @classmethod
    def parse_list(cls, output: str) -> List["SecureKey"]:
        """Keys described by the output of "zkey list" """
        if not output or not output.strip():
            return []
        records = _RECORD_SEPARATOR.split(output.strip())
        return [key for key in (cls.from_zkey(r) for r in records) if key]

    @classmethod
    def from_zkey(cls, record: str) -> Optional["SecureKey"]:
        """
        Key described by one record of the "zkey list" output.

        The name is the last word of the first line. Returns None for an
        empty record.
        """
        lines = [line for line in record.splitlines() if line.strip()]
        if not lines:
            return None

        key = cls(lines[0].split()[-1], sector_size=cls._sector_size(lines))
        key._volumes.extend(cls._volume_entries(lines))
        return key

    @classmethod
    def for_plain_device(cls, device: BlkDevice) -> Optional["SecureKey"]:
        """
        Key registered for the given plain device under any of its names.

        Returns:
            The first key referencing the device, None if there is none or
            zkey fails
        """
        result = execute.run(ZKEY, "list", "--volumes", ",".join(device.aliases))
        if not result.ok:
            Logger.info(f"No secure key found for {device.name}")
            return None
        return next((k for k in cls.parse_list(result.stdout) if k.for_device(device)), None)

    @classmethod
    def for_device(cls, device: Union[BlkDevice, Encryption]) -> Optional["SecureKey"]:
        """Scan all the keys looking for one that references the device"""
        return next((k for k in cls.all_keys() if k.for_device(device)), None)

    # ========================================================================
    # Generation
    # ========================================================================

    @classmethod
    def exclusive_name(cls, name: str, existing: Optional[Iterable[str]] = None) -> str:
        """
        Name not used by any key in the repository, based on name.

        The numbers 0, 1, 2... are appended to the name until a free one is
        found.
        """
        if existing is None:
            existing = [k.name for k in cls.all_keys()]
        taken = set(existing)

        if name not in taken:
            return name

        suffix = 0
        while f"{name}{suffix}" in taken:
            suffix += 1
        return f"{name}{suffix}"

    @classmethod
    def generate(cls, name: str, volumes: Sequence[Encryption] = (),
                 sector_size: int = SECURE_KEY_SECTOR_SIZE,
                 apqns: Sequence[Adapter] = ()) -> "SecureKey":
        """
        Register a new key in the repository with "zkey generate".

        The final name may differ from the requested one, see exclusive_name().
        A failure of zkey is only logged. Formatting the device with the key
        will fail later on, since the key file will not exist.

        Args:
            name: Tentative name for the key
            volumes: Encryption devices to register in the key
            sector_size: Sector size for the LUKS2 volumes
            apqns: APQNs to use

        Returns:
            Object representing the new key
        """
        key = cls(cls.exclusive_name(name), sector_size=sector_size, apqns=apqns)
        for volume in volumes:
            key.add_device(volume)

        result = execute.run(ZKEY, "generate", *key.generate_args())
        if result.ok:
            Logger.info(f"Generated secure key {key.name}")
        else:
            Logger.info(f"zkey generate failed for {key.name}: {result.stderr.strip()}")
        return key

    def generate_args(self) -> List[str]:
        """Arguments for "zkey generate" """
        args = [
            "--name", self.name,
            "--xts",
            "--keybits", str(SECURE_KEY_BITS),
            "--volume-type", "LUKS2",
        ]

        if self.sector_size:
            args += ["--sector-size", str(self.sector_size)]

        if self._volumes:
            args += ["--volumes", ",".join(str(v) for v in self._volumes)]

        if self.apqns:
            args += ["--apqns", ",".join(a.name for a in self.apqns)]

        return args

    # ========================================================================
    # Volumes
    # ========================================================================

    @property
    def volumes(self) -> List[VolumeAssociation]:
        return list(self._volumes)

    def volume_entry(self, device: Union[BlkDevice, Encryption]) -> Optional[VolumeAssociation]:
        return next((v for v in self._volumes if v.matches(device)), None)

    def for_device(self, device: Union[BlkDevice, Encryption]) -> bool:
        """Whether the key references the plain device or the encryption"""
        return self.volume_entry(device) is not None

    def dm_name(self, device: Union[BlkDevice, Encryption]) -> Optional[str]:
        """
        DeviceMapper name registered in the key for the device.

        Returns:
            None if the key does not reference the device or the entry has
            no DeviceMapper name
        """
        entry = self.volume_entry(device)
        return entry.dm_name if entry else None

    def plain_name(self, device: Union[BlkDevice, Encryption]) -> Optional[str]:
        """Name the plain device is registered with in the key"""
        entry = self.volume_entry(device)
        return entry.plain_name if entry else None

    def add_device(self, encryption: Encryption) -> VolumeAssociation:
        """Add the device to the volumes of the key (in memory only)"""
        entry = VolumeAssociation.from_encryption(encryption)
        self._volumes.append(entry)
        return entry

    def add_device_and_write(self, encryption: Encryption) -> VolumeAssociation:
        """Add the device to the volumes of the key, also in the repository"""
        entry = self.add_device(encryption)

        result = execute.run(ZKEY, "change", "--name", self.name, "--volumes", f"+{entry}")
        if not result.ok:
            Logger.info(f"Cannot add {entry} to secure key {self.name}")
        return entry

    def remove(self) -> bool:
        """Remove the key from the repository"""
        result = execute.run(ZKEY, "remove", "--force", "--name", self.name)
        if not result.ok:
            Logger.error(f"Error removing the key {self.name}: {result.stderr.strip()}")
        return result.ok

    # ========================================================================
    # Repository files
    # ========================================================================

    @staticmethod
    def repo_dir() -> str:
        """Location of the current zkey repository"""
        return os.environ.get(ZKEY_REPOSITORY_ENV) or ZKEY_REPOSITORY_DIR

    @property
    def filename(self) -> str:
        """Full path of the secure key file"""
        return os.path.join(self.repo_dir(), self.name + ".skey")

    def copy_to_repository(self, base_dir: str) -> bool:
        """
        Copy the files of the key to the repository of another system.

        Args:
            base_dir: Where the target system is mounted

        Returns:
            True if the files were copied or are already there
        """
        target = os.path.join(base_dir, ZKEY_REPOSITORY_DIR.lstrip("/"))
        if not os.path.isdir(target):
            return False

        if os.path.realpath(target) == os.path.realpath(self.repo_dir()):
            Logger.debug("zkey", f"Key {self.name} already in {target}")
            return True

        Logger.info(f"Copying files of key {self.name} to {target}")
        try:
            target_stat = os.stat(target)
            for path in glob.glob(os.path.join(self.repo_dir(), self.name + ".*")):
                copied = shutil.copy2(path, target)
                os.chown(copied, target_stat.st_uid, target_stat.st_gid)
        except OSError as e:
            Logger.error(f"Error copying the key {self.name}: {e}")
            return False
        return True

    # ========================================================================
    # Parsing helpers
    # ========================================================================

    @staticmethod
    def _sector_size(lines: List[str]) -> Optional[int]:
        for line in lines:
            field, sep, value = line.partition(":")
            if sep and field.strip() == "Sector size":
                value = value.strip()
                if value[:1].isdigit():
                    return int(value.split()[0])
        return None

    @staticmethod
    def _volume_entries(lines: List[str]) -> List[VolumeAssociation]:
        entries = []
        in_block = False

        for line in lines:
            match = _VOLUMES_FIELD.match(line)
            if match and not in_block:
                in_block = True
                candidate = match.group(1).strip()
            elif in_block and line[:1].isspace() and line.strip().startswith("/"):
                candidate = line.strip()
            elif in_block:
                break
            else:
                continue

            if candidate.startswith("/"):
                entries.append(VolumeAssociation.from_string(candidate))

        return entries

    def __repr__(self) -> str:
        return f"SecureKey({self.name!r}, volumes={[str(v) for v in self._volumes]})"
