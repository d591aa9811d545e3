"""
TPM2 Probe

Checks whether a TPM2 chip can be reached from the current environment.
Some installation environments cannot talk to the TPM even if the machine
has one.

Requirements:
- tpm2-pytss library
"""

from tpm2_pytss import ESAPI, TPM2_RC, TPM2_SU, TSS2_Exception

from .logger import Logger


def tpm2_reachable() -> bool:
    """
    Open an ESAPI context and start the TPM up.

    A TPM that was already started answers with TPM2_RC.INITIALIZE, which
    still means it is reachable.

    Returns:
        True if the TPM answered
    """
    try:
        esapi = ESAPI()
    except (TSS2_Exception, OSError) as e:
        Logger.info(f"No TPM2 reachable: {e}")
        return False

    try:
        esapi.startup(TPM2_SU.CLEAR)
    except TSS2_Exception as e:
        if e.rc != TPM2_RC.INITIALIZE:
            Logger.info(f"TPM2 startup failed: {e}")
            return False
    finally:
        esapi.close()

    return True
