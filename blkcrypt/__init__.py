"""
blkcrypt Package
Selection and execution of disk-encryption strategies for block devices.
"""

__version__ = '0.1.0'

from .devices import BlkDevice, Encryption
from .encryption_types import Authentication, EncryptionType, PbkdFunction, StrategyId
from .execute import CommandFailed, CommandResult
from .strategy_interface import EncryptionStrategy
from .tpm_fde_strategy import InstallationSession, SessionState
from .registry import (
    all_strategies, available_strategies, current_session, find, for_device, select, start_session
)

__all__ = [
    'BlkDevice',
    'Encryption',
    'Authentication',
    'EncryptionType',
    'PbkdFunction',
    'StrategyId',
    'CommandFailed',
    'CommandResult',
    'EncryptionStrategy',
    'InstallationSession',
    'SessionState',
    'all_strategies',
    'available_strategies',
    'current_session',
    'find',
    'for_device',
    'select',
    'start_session',
]
