"""
fde-tools Wrapper

Runs the fdectl subcommands needed to prepare a freshly installed system
for TPM-based unlocking, plus the systemd service that finishes the
enrollment on first boot.

The recovery password is always handed to fdectl through stdin and never
shows up in the argument list or in the log output.
"""

from typing import List, Optional

from . import execute
from .config import CHROOT, FDE_ENROLL_SERVICE, FDECTL, SYSTEMCTL
from .logger import Logger


class EnrollService:
    """systemd service that enrolls the TPM on first boot"""

    def __init__(self, name: str = FDE_ENROLL_SERVICE, root: str = "/"):
        self.name = name
        self.root = root

    def enable(self) -> bool:
        result = execute.run(SYSTEMCTL, "--root", self.root, "enable", self.name)
        if not result.ok:
            Logger.info(f"Cannot enable {self.name}: {result.stderr.strip()}")
        return result.ok


class FdeTools:
    """
    fdectl commands, executed in the system mounted at root.
    """

    def __init__(self, password: Optional[str] = None, root: str = "/"):
        """
        Args:
            password: Recovery password shared by all the devices
            root: Root of the system to act on, "/" for the running one
        """
        self.password = password
        self.root = root

    def tpm_present(self) -> bool:
        """Whether fdectl finds a working TPM2 chip"""
        result = execute.run(*self._command("tpm-present"))
        if not result.ok:
            Logger.info("fdectl reports no usable TPM")
        return result.ok

    def add_secondary_password(self) -> bool:
        """
        Leave the recovery password "under the doormat", so the boot loader
        can unlock the devices on the first boot.
        """
        return self._run_with_password("add-secondary-password")

    def add_secondary_key(self) -> bool:
        """Add the key slot that fde-tpm-enroll will seal to the TPM"""
        return self._run_with_password("add-secondary-key")

    def enroll_service(self) -> EnrollService:
        return EnrollService(root=self.root)

    def _run_with_password(self, subcommand: str) -> bool:
        result = execute.run(
            *self._command(subcommand),
            stdin=f"{self.password or ''}\n",
            record_stdin=False
        )
        if not result.ok:
            Logger.info(f"fdectl {subcommand} failed: {result.stderr.strip()}")
        return result.ok

    def _command(self, subcommand: str) -> List[str]:
        command = [FDECTL, subcommand]
        if self.root and self.root != "/":
            command = [CHROOT, self.root] + command
        return command
