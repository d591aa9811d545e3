"""
Volume entries of a secure key.

zkey keeps, for every secure key, the list of volumes encrypted with it,
each one written as "<plain device>[:<dm name>]".
"""

from typing import NamedTuple, Optional, Union

from .devices import BlkDevice, Encryption


class VolumeAssociation(NamedTuple):
    """Link between a plain device name and the DeviceMapper name it gets"""
    plain_name: str
    dm_name: Optional[str] = None

    @classmethod
    def from_string(cls, text: str) -> "VolumeAssociation":
        """
        Parse an entry in the zkey format.

        Args:
            text: e.g. "/dev/dasdc1:cr_7" or "/dev/dasdc1"
        """
        plain_name, _, dm_name = text.strip().rpartition(":")
        if not plain_name:
            return cls(dm_name)
        return cls(plain_name, dm_name or None)

    @classmethod
    def from_encryption(cls, encryption: Encryption) -> "VolumeAssociation":
        """Entry describing the given encryption device"""
        return cls(encryption.plain_device.preferred_name, encryption.dm_table_name)

    def matches(self, device: Union[BlkDevice, Encryption]) -> bool:
        """
        Whether the entry refers to the device.

        Args:
            device: Plain device being encrypted or the resulting encryption
        """
        if isinstance(device, Encryption):
            if self.plain_name in device.plain_device.aliases:
                return True
            return self.dm_name is not None and self.dm_name == device.dm_table_name

        return self.plain_name in device.aliases

    def __str__(self) -> str:
        if self.dm_name:
            return f"{self.plain_name}:{self.dm_name}"
        return self.plain_name
