"""Feature strategies: login event -> fixed-width numeric vector.

One strategy per address family. A strategy is picked once per training run
and handed to every later stage, so a dataset never mixes IPv4 and IPv6
layouts and a model is never scored with another strategy's vectors.

Vector layout (both families)::

    [16 uid bits][address bits]

The uid bits come from a CRC32 of the account id. IPv4 contributes all 32
address bits; IPv6 contributes the 64-bit routing prefix only, since the
interface identifier is frequently randomized (privacy extensions) and would
otherwise make every login from the same network look new.
"""

from __future__ import annotations

import ipaddress
import random
import zlib
from abc import ABC, abstractmethod
from enum import Enum
from typing import List

import numpy as np

from .config import MlpConfig
from .exceptions import ServiceException
from .ingest import LoginEvent

UID_BITS = 16


class AddressFamily(str, Enum):
    V4 = "v4"
    V6 = "v6"


def _bits(value: int, width: int) -> List[float]:
    return [float((value >> (width - 1 - i)) & 1) for i in range(width)]


def uid_bits(uid: str) -> List[float]:
    return _bits(zlib.crc32(uid.encode("utf-8")) & 0xFFFF, UID_BITS)


class ClassificationStrategy(ABC):
    """Address-family specific feature encoding and hyperparameter defaults."""

    address_family: AddressFamily
    address_bits: int

    @classmethod
    @abstractmethod
    def type_name(cls) -> str:
        ...

    @abstractmethod
    def default_mlp_config(self) -> MlpConfig:
        ...

    @abstractmethod
    def address_key(self, ip: str) -> int:
        """Return the encoded address part as an integer.

        Raises ValueError if ``ip`` is not in this strategy's family.
        """

    @abstractmethod
    def random_ip(self, rng: random.Random) -> str:
        """Draw an address uniformly from this family's address space."""

    @property
    def feature_width(self) -> int:
        return UID_BITS + self.address_bits

    def is_valid_ip(self, ip: str) -> bool:
        try:
            self.address_key(ip)
        except ValueError:
            return False
        return True

    def extract_features(self, event: LoginEvent) -> np.ndarray:
        try:
            address = self.address_key(event.ip)
        except ValueError as ex:
            raise ServiceException(
                f"{event.ip!r} is not an {self.type_name()} address",
                details={"strategy": self.type_name(), "ip": event.ip},
            ) from ex
        return np.asarray(uid_bits(event.uid) + _bits(address, self.address_bits), dtype=np.float32)

    def extract_batch(self, events: List[LoginEvent]) -> np.ndarray:
        if not events:
            return np.empty((0, self.feature_width), dtype=np.float32)
        return np.vstack([self.extract_features(e) for e in events])


class IPv4Strategy(ClassificationStrategy):
    address_family = AddressFamily.V4
    address_bits = 32

    @classmethod
    def type_name(cls) -> str:
        return "IPv4"

    def default_mlp_config(self) -> MlpConfig:
        return MlpConfig(
            epochs=30,
            layers=2,
            shuffled_negative_rate=0.5,
            random_negative_rate=0.5,
            learning_rate=0.005,
            batch_size=64,
        )

    def address_key(self, ip: str) -> int:
        addr = ipaddress.ip_address(ip)
        if not isinstance(addr, ipaddress.IPv4Address):
            raise ValueError(f"{ip} is not IPv4")
        return int(addr)

    def random_ip(self, rng: random.Random) -> str:
        return str(ipaddress.IPv4Address(rng.getrandbits(32)))


class IPv6Strategy(ClassificationStrategy):
    address_family = AddressFamily.V6
    address_bits = 64

    @classmethod
    def type_name(cls) -> str:
        return "IPv6"

    def default_mlp_config(self) -> MlpConfig:
        # wider input and a much sparser address space
        return MlpConfig(
            epochs=40,
            layers=3,
            shuffled_negative_rate=0.5,
            random_negative_rate=0.7,
            learning_rate=0.002,
            batch_size=64,
        )

    def address_key(self, ip: str) -> int:
        addr = ipaddress.ip_address(ip)
        if not isinstance(addr, ipaddress.IPv6Address):
            raise ValueError(f"{ip} is not IPv6")
        return int(addr) >> 64

    def random_ip(self, rng: random.Random) -> str:
        return str(ipaddress.IPv6Address(rng.getrandbits(128)))


def strategy_for_family(family) -> ClassificationStrategy:
    family = AddressFamily(family)
    if family == AddressFamily.V6:
        return IPv6Strategy()
    return IPv4Strategy()
