"""
Swap Strategies

Swap devices are encrypted with plain dm-crypt and a new volatile key on
every boot. The key comes from a different source depending on the
strategy:

- RandomSwapStrategy: /dev/urandom
- ProtectedSwapStrategy: protected AES key from the pkey module (IBM Z)
- SecureSwapStrategy: secure AES key from a Crypto Express CCA coprocessor
"""

import os
from typing import List, Optional

from .config import (
    PERVASIVE_CIPHER, PROTECTED_SWAP_KEY_FILE, RANDOM_SWAP_KEY_FILE, SECURE_SWAP_KEY_FILE
)
from .devices import BlkDevice, Encryption
from .encryption_types import EncryptionType, StrategyId
from .strategy_interface import EncryptionStrategy, has_option


SWAP_OPTION = "swap"


class SwapStrategy(EncryptionStrategy):
    """
    Base class for the strategies using a volatile key for swap.

    Subclasses only differ in the key source and, optionally, in the cipher,
    key size and sector size used to open the device.
    """

    encryption_type = EncryptionType.PLAIN
    only_for_swap = True

    KEY_FILE: str = ""
    CIPHER: Optional[str] = None
    KEY_SIZE: Optional[int] = None
    SECTOR_SIZE: Optional[int] = None

    def available(self) -> bool:
        """Whether the key source exists in this system"""
        return os.path.exists(self.KEY_FILE)

    def applies_to(self, encryption: Encryption) -> bool:
        """Devices with the swap option in crypttab, no matter the case"""
        return has_option(encryption.crypt_options, SWAP_OPTION)

    def uses_key_file(self, encryption: Encryption) -> bool:
        """Whether the device takes its key from the source of this strategy"""
        return encryption.key_file == self.KEY_FILE

    def crypt_options(self) -> List[str]:
        """Options for the fourth column of crypttab"""
        options = [
            SWAP_OPTION,
            f"cipher={self.CIPHER}" if self.CIPHER else None,
            f"size={self.KEY_SIZE}" if self.KEY_SIZE else None,
            f"sector-size={self.SECTOR_SIZE}" if self.SECTOR_SIZE else None,
        ]
        return [o for o in options if o is not None]

    def open_options(self) -> List[str]:
        """Options to open the device with cryptsetup"""
        options = [
            f"--cipher={self.CIPHER}" if self.CIPHER else None,
            f"--key-size={self.KEY_SIZE}" if self.KEY_SIZE else None,
            f"--sector-size={self.SECTOR_SIZE}" if self.SECTOR_SIZE else None,
        ]
        return [o for o in options if o is not None]

    def create_device(self, plain_device: BlkDevice, dm_name: Optional[str] = None,
                      **params) -> Encryption:
        encryption = super().create_device(plain_device, dm_name, **params)
        if self.KEY_FILE:
            encryption.key_file = self.KEY_FILE
        encryption.crypt_options = self.crypt_options() + encryption.crypt_options
        encryption.open_options = self.open_options()
        encryption.cipher = self.CIPHER
        encryption.key_size = self.KEY_SIZE
        return encryption


class RandomSwapStrategy(SwapStrategy):
    """Swap with a random password"""

    id = StrategyId.RANDOM_SWAP
    label = "Volatile Encryption with Random Key"

    KEY_FILE = RANDOM_SWAP_KEY_FILE


class ProtectedSwapStrategy(SwapStrategy):
    """Swap with a volatile protected AES key"""

    id = StrategyId.PROTECTED_SWAP
    label = "Volatile Encryption with Protected Key"

    KEY_FILE = PROTECTED_SWAP_KEY_FILE
    CIPHER = PERVASIVE_CIPHER
    KEY_SIZE = 1280
    SECTOR_SIZE = 4096


class SecureSwapStrategy(SwapStrategy):
    """Swap with a volatile secure AES key"""

    id = StrategyId.SECURE_SWAP
    label = "Volatile Encryption with Secure Key"

    KEY_FILE = SECURE_SWAP_KEY_FILE
    CIPHER = PERVASIVE_CIPHER
    KEY_SIZE = 1024
    SECTOR_SIZE = 4096
