"""
Encryption Strategy Interface - Abstract base for encryption methods

A strategy knows how to set up an encryption layer over a block device for
one encryption method, and what to do right before and right after the
change is written to disk.

Implementations:
- Luks1Strategy, Luks2Strategy, SystemdFdeStrategy: regular LUKS devices
- RandomSwapStrategy, ProtectedSwapStrategy, SecureSwapStrategy: swap with
  a volatile key
- PervasiveStrategy: LUKS2 with secure AES keys (IBM Z)
- TpmFdeStrategy: LUKS2 unlocked by the TPM via fde-tools
"""

from abc import ABC
from typing import Optional, Sequence, TYPE_CHECKING

from .devices import BlkDevice, Encryption, dm_name_for
from .encryption_types import EncryptionType, StrategyId
from .logger import Logger

if TYPE_CHECKING:
    from .tpm_fde_strategy import InstallationSession


class EncryptionStrategy(ABC):
    """
    Base class for all the encryption strategies.

    Subclasses set the class attributes and override the hooks they need.
    Every hook has a sensible default, so a strategy only implements what
    makes it different.
    """

    id: StrategyId
    label: str = ""
    encryption_type: EncryptionType = EncryptionType.LUKS2
    only_for_swap: bool = False

    def __init__(self, session: Optional["InstallationSession"] = None):
        """
        Args:
            session: Installation run the strategy is used in, if any
        """
        self.session = session

    def applies_to(self, encryption: Encryption) -> bool:
        """
        Whether an existing encryption device was created with this strategy.

        Returns:
            False unless the strategy can recognize its own devices
        """
        return False

    def available(self) -> bool:
        """Whether the strategy can be used in the current system"""
        return True

    def create_device(self, plain_device: BlkDevice, dm_name: Optional[str] = None,
                      crypt_options: Sequence[str] = (), **_params) -> Encryption:
        """
        Create the encryption layer over plain_device.

        Args:
            plain_device: Device to encrypt
            dm_name: DeviceMapper name, a default one is used if empty
            crypt_options: Options the caller already wants in crypttab

        Returns:
            Encryption device, not yet committed

        Raises:
            TypeError: If plain_device is already an encryption device
            ValueError: If plain_device is already encrypted
        """
        if isinstance(plain_device, Encryption):
            raise TypeError(f"Cannot encrypt the encryption device {plain_device.name}")

        auto_dm_name = not dm_name
        encryption = plain_device.encrypt(self.encryption_type, dm_name or dm_name_for(plain_device))
        encryption.auto_dm_name = auto_dm_name
        encryption.crypt_options = list(crypt_options)
        encryption.strategy = self
        return encryption

    def pre_commit(self, encryption: Encryption) -> None:
        """Actions to perform right before the device is created"""
        Logger.debug(self.id.value, f"Nothing to do before creating {encryption.name}")

    def post_commit(self, encryption: Encryption) -> None:
        """Actions to perform right after the device is created"""
        Logger.debug(self.id.value, f"Nothing to do after creating {encryption.name}")

    def finish_installation(self) -> bool:
        """
        Actions to perform once at the end of the installation.

        Returns:
            False if something went wrong
        """
        Logger.debug(self.id.value, "Nothing to do at the end of installation")
        return True

    def to_human_string(self) -> str:
        return self.label

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EncryptionStrategy):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.id.value})"


def has_option(options: Sequence[str], option: str) -> bool:
    """Case-insensitive check for an option in a crypttab option list"""
    return any(o.lower() == option.lower() for o in options)

