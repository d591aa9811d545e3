"""
Enumerations shared by the encryption strategies and the device model.
"""

from enum import Enum
from typing import Optional


class EncryptionType(Enum):
    """Encryption technology of a device"""
    PLAIN = "plain"
    LUKS1 = "luks1"
    LUKS2 = "luks2"


class PbkdFunction(Enum):
    """Password-based key derivation functions supported by LUKS2"""
    PBKDF2 = "pbkdf2"
    ARGON2I = "argon2i"
    ARGON2ID = "argon2id"

    @classmethod
    def find(cls, value: Optional[str]) -> Optional["PbkdFunction"]:
        """Case-insensitive lookup, None for absent or unknown values"""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class Authentication(Enum):
    """Unlocking mechanism for systemd-style LUKS2 devices"""
    PASSWORD = "password"
    TPM2 = "tpm2"
    TPM2_PIN = "tpm2+pin"
    FIDO2 = "fido2"

    @property
    def crypt_option(self) -> Optional[str]:
        """Option for the fourth column of crypttab, if any"""
        if self in (Authentication.TPM2, Authentication.TPM2_PIN):
            return "tpm2-device=auto"
        if self is Authentication.FIDO2:
            return "fido2-device=auto"
        return None


class StrategyId(Enum):
    """Identifiers of the encryption strategies"""
    LUKS1 = "luks1"
    LUKS2 = "luks2"
    PERVASIVE_LUKS2 = "pervasive_luks2"
    RANDOM_SWAP = "random_swap"
    PROTECTED_SWAP = "protected_swap"
    SECURE_SWAP = "secure_swap"
    SYSTEMD_FDE = "systemd_fde"
    TPM_FDE = "tpm_fde"
