"""
TPM-Based Full Disk Encryption (fde-tools)

Devices are encrypted with LUKS2 as usual, but with the crypttab values
expected by fde-tools. The TPM itself is only configured once, at the end of
the installation, for all the involved devices at the same time:

  Phase 1 (every device, during commit):
    - create_device: LUKS2 + fde-tools crypttab settings
    - post_commit: the device joins the InstallationSession

  Phase 2 (once, at the end of installation):
    - FDE_DEVS is set in the fde-tools configuration of the new system
    - "fdectl add-secondary-password" lets the boot loader unlock the
      devices on the first boot
    - "fdectl add-secondary-key" prepares the devices for the TPM
    - fde-tpm-enroll.service is enabled to seal the key on first boot

fde-tools requires all the devices to share the same recovery password.
"""

import os
from enum import Enum
from typing import Callable, List, Optional

from .config import DEFAULT_TARGET_ROOT, EFI_FIRMWARE_DIR, FDE_CRYPT_OPTIONS, FDE_KEY_FILE
from .devices import BlkDevice, Encryption
from .encryption_types import EncryptionType, StrategyId
from .fde_tools import FdeTools
from .logger import Logger
from .strategy_interface import EncryptionStrategy
from .sysconfig import FdeToolsConfig


class SessionState(Enum):
    """Progress of the TPM configuration in an installation run"""
    IDLE = "idle"                   # No device waiting for the TPM setup
    ACCUMULATING = "accumulating"   # Devices recorded, finalize() pending


class InstallationSession:
    """
    State shared by all the encryption strategies during one installation
    run.

    Collects the devices encrypted with TpmFdeStrategy and performs the
    fde-tools configuration for all of them in a single finalize() call.
    The session is not thread-safe; the installation is expected to
    configure devices one after another.
    """

    def __init__(self, installation: bool = True, target_root: str = DEFAULT_TARGET_ROOT,
                 fde_config: Optional[FdeToolsConfig] = None,
                 fde_tools_factory: Callable[..., FdeTools] = FdeTools):
        """
        Args:
            installation: False when running in an already installed system
            target_root: Where the system being installed is mounted
            fde_config: fde-tools configuration, the one at target_root by default
            fde_tools_factory: Builds the fdectl wrapper (password, root)
        """
        self.installation = installation
        self.target_root = target_root
        self.fde_tools_factory = fde_tools_factory
        self._fde_config = fde_config

        self.devices: List[Encryption] = []
        self.recovery_password: Optional[str] = None

    @property
    def fde_config(self) -> FdeToolsConfig:
        if self._fde_config is None:
            self._fde_config = FdeToolsConfig.for_root(self.target_root)
        return self._fde_config

    @property
    def state(self) -> SessionState:
        return SessionState.ACCUMULATING if self.devices else SessionState.IDLE

    def accumulate(self, encryption: Encryption) -> None:
        """
        Record a device for the final TPM configuration.

        Only meaningful during installation, ignored otherwise.

        Raises:
            ValueError: If the password differs from the one of the devices
                already recorded
        """
        if not self.installation:
            Logger.debug("tpm_fde", f"Not installing, {encryption.name} not recorded")
            return

        if self.devices and encryption.password != self.recovery_password:
            raise ValueError(
                f"{encryption.name} must use the same password as the other TPM encrypted devices"
            )

        if not self.devices:
            self.recovery_password = encryption.password
        self.devices.append(encryption)
        Logger.debug("tpm_fde", f"{encryption.name} recorded for TPM enrollment")

    def finalize(self) -> bool:
        """
        Configure fde-tools for all the recorded devices.

        Does nothing if there are no devices. If any step fails, the devices
        are kept so finalize() can be retried.

        Returns:
            False if some step failed
        """
        if not self.devices:
            return True

        Logger.section("TPM Full Disk Encryption")

        if not self._configure_fde_tools():
            Logger.error("Failed to write the fde-tools configuration")
            return False

        fde = self.fde_tools_factory(self.recovery_password, self.target_root)
        success = (
            fde.add_secondary_password() and
            fde.add_secondary_key() and
            fde.enroll_service().enable()
        )
        if not success:
            Logger.error("Failed to prepare the devices for TPM enrollment")
            return False

        Logger.success(f"Prepared {len(self.devices)} device(s) for TPM enrollment")
        self.devices = []
        self.recovery_password = None
        return True

    def _configure_fde_tools(self) -> bool:
        """Set FDE_DEVS and check it was really written"""
        names = sorted(d.plain_device.preferred_name for d in self.devices)
        self.fde_config.devices = names
        return self.fde_config.devices == names


class TpmFdeStrategy(EncryptionStrategy):
    """
    LUKS2 unlocked by the TPM, configured with fde-tools.

    It must be used at least for the root filesystem. This can only be
    validated considering all the devices, not here.
    """

    id = StrategyId.TPM_FDE
    label = "TPM-Based Full Disk Encryption"
    encryption_type = EncryptionType.LUKS2

    def __init__(self, session: Optional[InstallationSession] = None):
        """
        Args:
            session: Installation run shared by all the TPM devices, see
                registry.current_session()

        Raises:
            TypeError: If no session is given
        """
        if session is None:
            raise TypeError("TpmFdeStrategy needs the InstallationSession of the run")
        super().__init__(session)
        self._tpm_present: Optional[bool] = None

    def available(self) -> bool:
        """
        Not offered for interactive selection. Unattended installers use it
        directly after checking possible().
        """
        return False

    def applies_to(self, encryption: Encryption) -> bool:
        return encryption.type is EncryptionType.LUKS2 and encryption.key_file == FDE_KEY_FILE

    def possible(self) -> bool:
        """Whether the system is able to use the TPM for unlocking"""
        return self.efi_boot() and self.tpm_present()

    @staticmethod
    def efi_boot() -> bool:
        return os.path.isdir(EFI_FIRMWARE_DIR)

    def tpm_present(self) -> bool:
        """TPM2 chip reachable and accepted by fdectl (memoized)"""
        if self._tpm_present is None:
            from .tpm2_probe import tpm2_reachable
            self._tpm_present = tpm2_reachable() and FdeTools().tpm_present()
        return self._tpm_present

    def create_device(self, plain_device: BlkDevice, dm_name: Optional[str] = None,
                      label: Optional[str] = None, **params) -> Encryption:
        """
        Args:
            label: LUKS2 label
        """
        encryption = super().create_device(plain_device, dm_name, **params)
        if label:
            encryption.label = label
        for option in FDE_CRYPT_OPTIONS:
            if option not in encryption.crypt_options:
                encryption.crypt_options.append(option)
        encryption.key_file = FDE_KEY_FILE
        # The key file only exists after finalize()
        encryption.use_key_file_in_commit = False
        encryption.pbkdf = self.session.fde_config.pbkd_function
        return encryption

    def post_commit(self, encryption: Encryption) -> None:
        # TODO: adding a device to a system already using fde-tools needs
        # "fdectl regenerate-key" plus initrd and boot loader updates
        self.session.accumulate(encryption)

    def finish_installation(self) -> bool:
        return self.session.finalize()
