"""
Crypto Express Adapters (APQNs)

An APQN is a card.domain pair of an IBM Crypto Express coprocessor. Secure
keys are generated with and bound to the master key of one or more APQNs.

Example of lszcrypt output:

    CARD.DOMAIN TYPE  MODE        STATUS  REQUESTS
    ----------------------------------------------
    01          CEX5C CCA-Coproc  online         1
    01.0001     CEX5C CCA-Coproc  online         1
    01.0004     CEX5C CCA-Coproc  online         0
    03          CEX7P EP11-Coproc online         0
    03.0003     CEX7P EP11-Coproc online         0
"""

import re
from typing import List, Optional

from . import execute
from .config import LSZCRYPT, MKVPS_FILE_TEMPLATE
from .logger import Logger


# First column of the rows describing a card.domain pair
_APQN_NAME = re.compile(r'^\d+\.\d+$')

# Lines of the mkvps file with the current, usable master key
_AES_MASTER_KEY = re.compile(r'^AES CUR: valid')
_EP11_MASTER_KEY = re.compile(r'^WK CUR: valid')


class Adapter:
    """
    Snapshot of one APQN as reported by lszcrypt.
    """

    def __init__(self, name: str, type: str, mode: str, status: str, *_others: str):
        """
        Args:
            name: card.domain, e.g. "01.0001"
            type: Card type, e.g. "CEX5C"
            mode: Card mode, e.g. "CCA-Coproc"
            status: "online" or "offline"
        """
        self.card, _, self.domain = name.partition(".")
        self.type = type
        self.mode = mode
        self.status = status
        self.master_key_pattern: Optional[str] = None

    @classmethod
    def scan_all(cls) -> List["Adapter"]:
        """All the APQNs found in the system, empty if lszcrypt fails"""
        adapters = [cls(*row) for row in cls._rows(cls._lszcrypt())]
        for adapter in adapters:
            adapter.read_master_key()
        return adapters

    @classmethod
    def online_adapters(cls) -> List["Adapter"]:
        return [a for a in cls.scan_all() if a.online()]

    @classmethod
    def find(cls, name: str) -> Optional["Adapter"]:
        """APQN with the given card.domain name, if present"""
        return next((a for a in cls.scan_all() if a.name == name), None)

    @property
    def name(self) -> str:
        return f"{self.card}.{self.domain}"

    def online(self) -> bool:
        return self.status == "online"

    def ep11(self) -> bool:
        """Whether the coprocessor runs in EP11 mode"""
        return "EP11" in self.mode

    @property
    def master_key_file(self) -> str:
        return MKVPS_FILE_TEMPLATE.format(card=self.card, domain=self.domain)

    def read_master_key(self) -> None:
        """Fill master_key_pattern from the sysfs entry of the APQN"""
        self.master_key_pattern = self._master_key_from_file()

    def _master_key_from_file(self) -> Optional[str]:
        try:
            with open(self.master_key_file, encoding="utf-8", errors="replace") as f:
                content = f.read()
        except OSError:
            return None

        regexp = _EP11_MASTER_KEY if self.ep11() else _AES_MASTER_KEY
        for line in content.splitlines():
            if regexp.match(line):
                tokens = line.split()
                return tokens[-1] if tokens else None
        return None

    @staticmethod
    def _lszcrypt() -> str:
        result = execute.run(LSZCRYPT)
        if not result.ok:
            Logger.info(f"lszcrypt failed, no crypto adapters ({result.stderr.strip()})")
            return ""
        return result.stdout

    @staticmethod
    def _rows(output: str) -> List[List[str]]:
        """Token lists of the card.domain rows of the lszcrypt output"""
        rows = [line.split() for line in output.splitlines()]
        if len(rows) >= 3:
            # Header and separator
            rows = rows[2:]
        return [row for row in rows if len(row) >= 4 and _APQN_NAME.match(row[0])]

    def __repr__(self) -> str:
        return f"Adapter({self.name}, {self.type}, {self.mode}, {self.status})"
