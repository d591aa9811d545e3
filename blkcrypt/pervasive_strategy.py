"""
Pervasive Encryption Strategy

LUKS2 encryption for IBM Z where the volume key is a secure AES key bound
to the master key of a Crypto Express coprocessor.

The process looks like this:
- create_device: reuse the key already registered for the device, if any,
  including the DeviceMapper name recorded in it
- pre_commit: generate a new secure key if needed and set the luksFormat
  options that make cryptsetup use it
- post_commit: register the volume in the key and run the extra commands
  suggested by "zkey cryptsetup"
- finish_installation: copy the key to the repository of the new system
"""

import shlex
from typing import Optional, Sequence

from . import execute
from .apqn import Adapter
from .config import (
    DEFAULT_TARGET_ROOT, PERVASIVE_CIPHER, PERVASIVE_KEY_SIZE, PERVASIVE_PBKDF,
    SECURE_KEY_NAME_PREFIX, SECURE_KEY_SECTOR_SIZE, ZKEY
)
from .devices import BlkDevice, Encryption
from .encryption_types import EncryptionType, StrategyId
from .logger import Logger
from .secure_key import SecureKey
from .strategy_interface import EncryptionStrategy


class PervasiveStrategy(EncryptionStrategy):
    """
    Pervasive LUKS2 encryption with secure AES keys.

    Holds the key found or generated for the device being configured, so a
    new instance must be used for every device.
    """

    id = StrategyId.PERVASIVE_LUKS2
    label = "Pervasive Volume Encryption"
    encryption_type = EncryptionType.LUKS2

    def __init__(self, session=None):
        super().__init__(session)
        self.secure_key: Optional[SecureKey] = None
        self.apqns: Sequence[Adapter] = ()

    def available(self) -> bool:
        """Whether there is at least one online crypto adapter"""
        return SecureKey.available()

    def applies_to(self, encryption: Encryption) -> bool:
        return (
            encryption.type is EncryptionType.LUKS2 and
            (encryption.cipher or "").startswith("paes")
        )

    def create_device(self, plain_device: BlkDevice, dm_name: Optional[str] = None,
                      apqns: Sequence[Adapter] = (), **params) -> Encryption:
        """
        Args:
            apqns: APQNs to use if a new secure key must be generated
        """
        self.apqns = list(apqns)
        self.secure_key = SecureKey.for_plain_device(plain_device)

        name_from_key = self.secure_key.dm_name(plain_device) if self.secure_key else None
        encryption = super().create_device(plain_device, name_from_key or dm_name, **params)
        if name_from_key:
            Logger.info(f"Using DeviceMapper name {name_from_key} from secure key {self.secure_key.name}")
        return encryption

    def pre_commit(self, encryption: Encryption) -> None:
        """
        Generate a secure key for the device if there was none and set the
        options for luksFormat.
        """
        if self.secure_key is None:
            self.secure_key = SecureKey.generate(
                f"{SECURE_KEY_NAME_PREFIX}{encryption.dm_table_name}",
                volumes=[encryption],
                apqns=self.apqns
            )

        encryption.cipher = PERVASIVE_CIPHER
        encryption.key_size = PERVASIVE_KEY_SIZE

        options = [
            "--master-key-file", shlex.quote(self.secure_key.filename),
            "--key-size", str(PERVASIVE_KEY_SIZE),
            "--cipher", PERVASIVE_CIPHER,
        ]
        if encryption.plain_device.block_size >= SECURE_KEY_SECTOR_SIZE:
            options += ["--sector-size", str(SECURE_KEY_SECTOR_SIZE)]
        options += ["--pbkdf", PERVASIVE_PBKDF]

        encryption.format_options = " ".join(options)

    def post_commit(self, encryption: Encryption) -> None:
        """
        Register the volume in the key and run the commands reported by
        "zkey cryptsetup", skipping the first one (luksFormat, already done
        through the format options).
        """
        if self.secure_key is None:
            Logger.error(f"No secure key for {encryption.name}")
            return

        if not self.secure_key.for_device(encryption):
            self.secure_key.add_device_and_write(encryption)

        for command in self._zkey_cryptsetup(encryption)[1:]:
            args = command.split()

            if any(arg.lower() == "setvp" for arg in args):
                args += ["--key-file", "-"]
                result = execute.run(*args, stdin=encryption.password or "", record_stdin=False)
            else:
                result = execute.run(*args)

            if not result.ok:
                Logger.info(f"Command '{args[0]}' failed for {encryption.name}")

    def finish_installation(self) -> bool:
        """Copy the secure key to the repository of the installed system"""
        if self.secure_key is None:
            return True

        root = self.session.target_root if self.session else DEFAULT_TARGET_ROOT
        return self.secure_key.copy_to_repository(root)

    def _zkey_cryptsetup(self, encryption: Encryption) -> list:
        """Lines printed by "zkey cryptsetup" for the device"""
        name = self.secure_key.plain_name(encryption) or encryption.plain_device.name
        result = execute.run(ZKEY, "cryptsetup", "--volumes", name)
        if not result.ok:
            Logger.info(f"zkey cryptsetup failed for {name}")
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]
