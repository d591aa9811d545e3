"""
Regular LUKS Strategies

- Luks1Strategy: LUKS1 with a password
- Luks2Strategy: LUKS2 with a password, optional label and PBKDF
- SystemdFdeStrategy: LUKS2 unlocked by systemd with a TPM2 chip or a FIDO2
  token, enrolled with systemd-cryptenroll
"""

from typing import Optional

from . import execute
from .config import FDE_KEY_FILE, SYSTEMD_CRYPTENROLL
from .devices import BlkDevice, Encryption
from .encryption_types import Authentication, EncryptionType, PbkdFunction, StrategyId
from .logger import Logger
from .strategy_interface import EncryptionStrategy


class Luks1Strategy(EncryptionStrategy):
    """Regular LUKS1"""

    id = StrategyId.LUKS1
    label = "Regular LUKS1"
    encryption_type = EncryptionType.LUKS1

    def applies_to(self, encryption: Encryption) -> bool:
        return encryption.type is EncryptionType.LUKS1


class Luks2Strategy(EncryptionStrategy):
    """Regular LUKS2"""

    id = StrategyId.LUKS2
    label = "Regular LUKS2"
    encryption_type = EncryptionType.LUKS2

    def applies_to(self, encryption: Encryption) -> bool:
        return (
            encryption.type is EncryptionType.LUKS2 and
            encryption.authentication in (None, Authentication.PASSWORD) and
            encryption.key_file != FDE_KEY_FILE and
            not (encryption.cipher or "").startswith("paes")
        )

    def create_device(self, plain_device: BlkDevice, dm_name: Optional[str] = None,
                      label: Optional[str] = None, pbkdf: Optional[PbkdFunction] = None,
                      **params) -> Encryption:
        """
        Args:
            label: LUKS2 label
            pbkdf: Key derivation function for the password slot
        """
        encryption = super().create_device(plain_device, dm_name, **params)
        if label:
            encryption.label = label
        if pbkdf:
            encryption.pbkdf = pbkdf
        return encryption


class SystemdFdeStrategy(Luks2Strategy):
    """
    LUKS2 unlocked by systemd-cryptsetup.

    The device is created with a password as usual. Right after that, the
    TPM2 chip or FIDO2 token is enrolled in an additional key slot.
    """

    id = StrategyId.SYSTEMD_FDE
    label = "Systemd-based Full Disk Encryption"

    def applies_to(self, encryption: Encryption) -> bool:
        return (
            encryption.type is EncryptionType.LUKS2 and
            encryption.authentication not in (None, Authentication.PASSWORD)
        )

    def create_device(self, plain_device: BlkDevice, dm_name: Optional[str] = None,
                      label: Optional[str] = None, pbkdf: Optional[PbkdFunction] = None,
                      authentication: Authentication = Authentication.PASSWORD,
                      **params) -> Encryption:
        """
        Args:
            authentication: How the device is unlocked at boot
        """
        encryption = super().create_device(plain_device, dm_name, label=label, pbkdf=pbkdf, **params)
        encryption.authentication = authentication

        option = authentication.crypt_option
        if option and option not in encryption.crypt_options:
            encryption.crypt_options.append(option)
        return encryption

    def post_commit(self, encryption: Encryption) -> None:
        """Enroll the TPM2 chip or the FIDO2 token"""
        args = self._enroll_args(encryption.authentication)
        if not args:
            return

        result = execute.run(
            SYSTEMD_CRYPTENROLL, *args, encryption.plain_device.name,
            env={"PASSWORD": encryption.password or ""}
        )
        if result.ok:
            Logger.success(f"Enrolled {encryption.authentication.value} for {encryption.name}")
        else:
            Logger.info(f"systemd-cryptenroll failed for {encryption.name}: {result.stderr.strip()}")

    @staticmethod
    def _enroll_args(authentication: Optional[Authentication]) -> list:
        if authentication is Authentication.TPM2:
            return ["--tpm2-device=auto"]
        if authentication is Authentication.TPM2_PIN:
            return ["--tpm2-device=auto", "--tpm2-with-pin=yes"]
        if authentication is Authentication.FIDO2:
            return ["--fido2-device=auto"]
        return []
