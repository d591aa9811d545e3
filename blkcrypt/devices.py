"""
Device Model

Minimal representation of the storage graph objects the encryption
strategies operate on: plain block devices and the encryption layers
created on top of them.

The real storage graph (partitioning, filesystems, commit pipeline) lives
outside this package. These classes only carry the attributes that the
strategies read or set.
"""

from typing import List, Optional, TYPE_CHECKING

from .config import DM_NAME_PREFIX
from .encryption_types import Authentication, EncryptionType, PbkdFunction

if TYPE_CHECKING:
    from .strategy_interface import EncryptionStrategy


class BlkDevice:
    """
    Plain block device (disk, partition, DASD...).

    A device can be referenced by its kernel name or by any of the stable
    udev links pointing to it.
    """

    def __init__(self, name: str, udev_ids: Optional[List[str]] = None,
                 udev_paths: Optional[List[str]] = None, block_size: int = 512):
        """
        Args:
            name: Kernel name, e.g. "/dev/dasdc1"
            udev_ids: Full /dev/disk/by-id/ links of the device
            udev_paths: Full /dev/disk/by-path/ links of the device
            block_size: Size in bytes of the device blocks
        """
        self.name = name
        self.udev_ids = list(udev_ids or [])
        self.udev_paths = list(udev_paths or [])
        self.block_size = block_size
        self.encryption: Optional["Encryption"] = None

    @property
    def basename(self) -> str:
        """Last component of the kernel name"""
        return self.name.rsplit("/", 1)[-1]

    @property
    def aliases(self) -> List[str]:
        """Kernel name followed by every udev link, without duplicates"""
        result = []
        for name in [self.name] + self.udev_ids + self.udev_paths:
            if name not in result:
                result.append(name)
        return result

    @property
    def preferred_name(self) -> str:
        """Most stable name to reference the device"""
        if self.udev_ids:
            return self.udev_ids[0]
        if self.udev_paths:
            return self.udev_paths[0]
        return self.name

    @property
    def is_encrypted(self) -> bool:
        return self.encryption is not None

    def encrypt(self, encryption_type: EncryptionType, dm_name: str) -> "Encryption":
        """
        Create an encryption layer on top of the device.

        Raises:
            ValueError: If the device is already encrypted
        """
        if self.is_encrypted:
            raise ValueError(f"{self.name} is already encrypted")

        self.encryption = Encryption(self, encryption_type, dm_name)
        return self.encryption

    def __repr__(self) -> str:
        return f"BlkDevice({self.name!r})"


class Encryption:
    """
    Encryption layer over a plain block device, not yet committed to disk.
    """

    def __init__(self, blk_device: BlkDevice, encryption_type: EncryptionType, dm_table_name: str):
        self.blk_device = blk_device
        self.type = encryption_type
        self.dm_table_name = dm_table_name
        self.auto_dm_name = False

        self.password: Optional[str] = None
        self.key_file: Optional[str] = None
        self.use_key_file_in_commit = True

        # Fourth column of crypttab
        self.crypt_options: List[str] = []
        # Extra arguments for opening the device
        self.open_options: List[str] = []
        # Extra arguments for cryptsetup luksFormat
        self.format_options = ""

        self.label: Optional[str] = None
        self.pbkdf: Optional[PbkdFunction] = None
        self.cipher: Optional[str] = None
        self.key_size: Optional[int] = None
        self.authentication: Optional[Authentication] = None

        # Strategy that configured the device
        self.strategy: Optional["EncryptionStrategy"] = None

    @property
    def name(self) -> str:
        """Name of the device once it is opened"""
        return f"/dev/mapper/{self.dm_table_name}"

    @property
    def plain_device(self) -> BlkDevice:
        return self.blk_device

    def pre_commit(self) -> None:
        """Called by the commit pipeline right before writing to disk"""
        if self.strategy:
            self.strategy.pre_commit(self)

    def post_commit(self) -> None:
        """Called by the commit pipeline right after writing to disk"""
        if self.strategy:
            self.strategy.post_commit(self)

    def __repr__(self) -> str:
        return f"Encryption({self.name!r}, type={self.type.value})"


def dm_name_for(device: BlkDevice) -> str:
    """Default DeviceMapper name for the encryption of the given device"""
    return f"{DM_NAME_PREFIX}{device.basename}"
