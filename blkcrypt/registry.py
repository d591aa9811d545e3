"""
Strategy Selection

Maps identifiers, existing devices and device roles to the encryption
strategy to use. All the decisions are made here explicitly instead of
being spread across the strategy classes.
"""

from typing import List, Optional, Union

from .devices import Encryption
from .encryption_types import StrategyId
from .luks_strategy import Luks1Strategy, Luks2Strategy, SystemdFdeStrategy
from .pervasive_strategy import PervasiveStrategy
from .strategy_interface import EncryptionStrategy
from .swap_strategy import (
    ProtectedSwapStrategy, RandomSwapStrategy, SecureSwapStrategy, SwapStrategy
)
from .tpm_fde_strategy import InstallationSession, TpmFdeStrategy


STRATEGY_CLASSES = [
    Luks1Strategy,
    Luks2Strategy,
    PervasiveStrategy,
    RandomSwapStrategy,
    ProtectedSwapStrategy,
    SecureSwapStrategy,
    SystemdFdeStrategy,
    TpmFdeStrategy,
]

# Preferred strategies for swap, strongest key source first
SWAP_PREFERENCE = [
    StrategyId.SECURE_SWAP,
    StrategyId.PROTECTED_SWAP,
    StrategyId.RANDOM_SWAP,
]

# Devices recognized by several strategies are assigned to the most
# specific one
_RECOGNITION_ORDER = [
    StrategyId.RANDOM_SWAP,
    StrategyId.PROTECTED_SWAP,
    StrategyId.SECURE_SWAP,
    StrategyId.PERVASIVE_LUKS2,
    StrategyId.SYSTEMD_FDE,
    StrategyId.TPM_FDE,
    StrategyId.LUKS2,
    StrategyId.LUKS1,
]


# Installation run used when the caller does not pass a session
_current_session: Optional[InstallationSession] = None


def current_session() -> InstallationSession:
    """Session of the ongoing installation run, created on first use"""
    global _current_session
    if _current_session is None:
        _current_session = InstallationSession()
    return _current_session


def start_session(**params) -> InstallationSession:
    """
    Begin a new installation run.

    Strategies created afterwards without an explicit session share the new
    one, so the TPM devices of the whole run are finalized together.

    Args:
        params: Arguments for InstallationSession
    """
    global _current_session
    _current_session = InstallationSession(**params)
    return _current_session


def all_strategies(session: Optional[InstallationSession] = None) -> List[EncryptionStrategy]:
    """One new instance of every strategy"""
    if session is None:
        session = current_session()
    return [cls(session) for cls in STRATEGY_CLASSES]


def available_strategies(session: Optional[InstallationSession] = None) -> List[EncryptionStrategy]:
    """Strategies that can be used in the current system"""
    return [s for s in all_strategies(session) if s.available()]


def find(identifier: Union[StrategyId, str],
         session: Optional[InstallationSession] = None) -> Optional[EncryptionStrategy]:
    """
    New instance of the strategy with the given identifier.

    Returns:
        None for an unknown identifier
    """
    if not isinstance(identifier, StrategyId):
        try:
            identifier = StrategyId(str(identifier))
        except ValueError:
            return None

    cls = next((c for c in STRATEGY_CLASSES if c.id == identifier), None)
    if cls is None:
        return None
    return cls(session if session is not None else current_session())


def for_device(encryption: Encryption,
               session: Optional[InstallationSession] = None) -> Optional[EncryptionStrategy]:
    """
    Strategy that was used to create an existing encryption device.

    Several swap strategies recognize the same devices. The one using the
    key file of the device wins, random swap otherwise.
    """
    candidates = [s for s in all_strategies(session) if s.applies_to(encryption)]
    if not candidates:
        return None

    swap = [s for s in candidates if isinstance(s, SwapStrategy)]
    if swap:
        return next((s for s in swap if s.uses_key_file(encryption)),
                    next(s for s in swap if s.id is StrategyId.RANDOM_SWAP))

    candidates.sort(key=lambda s: _RECOGNITION_ORDER.index(s.id))
    return candidates[0]


def select(identifier: Union[StrategyId, str, None] = None, for_swap: bool = False,
           session: Optional[InstallationSession] = None) -> EncryptionStrategy:
    """
    Strategy to encrypt a new device.

    Args:
        identifier: Requested strategy, None to pick the default one
        for_swap: Whether the device will be used as swap

    Raises:
        KeyError: If the identifier is unknown
        ValueError: If a swap-only strategy is requested for other devices
    """
    if identifier is not None:
        strategy = find(identifier, session)
        if strategy is None:
            raise KeyError(f"Unknown encryption strategy: {identifier}")
        if strategy.only_for_swap and not for_swap:
            raise ValueError(f"{strategy.label} can only be used for swap")
        return strategy

    if for_swap:
        for swap_id in SWAP_PREFERENCE:
            strategy = find(swap_id, session)
            if strategy.available():
                return strategy

    return find(StrategyId.LUKS2, session)
