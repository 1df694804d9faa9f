from __future__ import annotations

import hashlib
import json
import logging
import random
import secrets
import string
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Union

logger = logging.getLogger(__name__)

_TOKEN_ALPHABET = string.ascii_lowercase + string.digits


@dataclass
class RandomSource:
    """
    A thin wrapper around random.Random to:
    - centralize RNG handling
    - support optional deterministic seeding for tests
    - provide helper for weighted choice
    """

    seed: int | None = None

    def __post_init__(self) -> None:
        if self.seed is not None:
            self._rng = random.Random(self.seed)
            logger.debug("Initialized RandomSource with deterministic seed=%s", self.seed)
        else:
            self._rng = random.Random()
            logger.debug("Initialized RandomSource with non-deterministic seed")

    def random(self) -> float:
        """Return the next random float in the range [0.0, 1.0)."""
        return self._rng.random()

    def uniform(self, a: float, b: float) -> float:
        return self._rng.uniform(a, b)

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def choice(self, seq: Iterable[Any]) -> Any:
        seq_list = list(seq)
        if not seq_list:
            raise ValueError("RandomSource.choice() received an empty sequence")
        idx = int(self.random() * len(seq_list))
        return seq_list[min(idx, len(seq_list) - 1)]

    def token(self, length: int = 6) -> str:
        """Short lowercase alphanumeric token used for display ids."""
        return "".join(self.choice(_TOKEN_ALPHABET) for _ in range(length))

    def weighted_choice(self, weights: Dict[Any, float]) -> Any:
        """
        Select a key from a dictionary of weights where values are non-negative numbers.
        If all weights are zero, raises ValueError.
        """
        if not weights:
            raise ValueError("weighted_choice requires a non-empty weights mapping")

        keys: List[Any] = []
        cumulative: List[float] = []
        total = 0.0
        for k, w in weights.items():
            if w < 0:
                raise ValueError(f"Weight for {k!r} must be non-negative, got {w}")
            if w == 0:
                continue
            total += w
            keys.append(k)
            cumulative.append(total)

        if total == 0:
            raise ValueError("All weights are zero; cannot make a weighted choice")

        r = self.random() * total
        for i, c in enumerate(cumulative):
            if r < c:
                return keys[i]
        return keys[-1]


def _to_stable_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


@dataclass
class RNGManager:
    """Central deterministic RNG manager.

    Hands out one RandomSource per domain, each seeded from the master seed so
    that room generation, combat variance and event/loot draws can be replayed
    independently of each other.

        rngm = RNGManager(42)
        rooms = rngm.stream("rooms")
        combat = rngm.stream("combat")

    The master seed can be an int, str, or bytes. Without one a random seed is
    generated and logged so a run can still be reproduced from the log.
    """

    master_seed: Union[int, str, bytes, None] = None
    _streams: Dict[str, RandomSource] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.master_seed is None:
            self._seed_bytes = secrets.token_bytes(16)
            logger.info("No master seed provided; generated random seed: %s", self._seed_bytes.hex())
        else:
            self._seed_bytes = self._canonicalize_seed(self.master_seed)
            logger.debug("Using master seed: %r", self.master_seed)

    @staticmethod
    def _canonicalize_seed(seed: Union[int, str, bytes]) -> bytes:
        if isinstance(seed, bytes):
            return seed
        if isinstance(seed, bool):
            raise TypeError("Unsupported seed type: %r" % (type(seed),))
        if isinstance(seed, int):
            length = (seed.bit_length() + 7) // 8 or 1
            return seed.to_bytes(length, "big", signed=False)
        if isinstance(seed, str):
            return seed.strip().encode("utf-8")
        raise TypeError("Unsupported seed type: %r" % (type(seed),))

    def derive_seed(self, domain: str, *identifiers: Any) -> int:
        """Derive a 64-bit integer seed from the master seed and a domain name."""
        payload = {
            "domain": domain,
            "ids": identifiers,
            "master": self._seed_bytes.hex(),
            "algo": "blake2b-64",
        }
        data = _to_stable_json(payload).encode("utf-8")
        h = hashlib.blake2b(data, digest_size=8)
        seed_int = int.from_bytes(h.digest(), "big", signed=False)
        logger.debug("Derived seed for domain=%s ids=%s -> %d", domain, identifiers, seed_int)
        return seed_int

    def stream(self, domain: str) -> RandomSource:
        """Return the RandomSource for ``domain``, creating it on first use."""
        src = self._streams.get(domain)
        if src is None:
            src = RandomSource(self.derive_seed(domain))
            self._streams[domain] = src
        return src

    @property
    def rooms(self) -> RandomSource:
        return self.stream("rooms")

    @property
    def combat(self) -> RandomSource:
        return self.stream("combat")

    @property
    def events(self) -> RandomSource:
        return self.stream("events")

    @property
    def loot(self) -> RandomSource:
        return self.stream("loot")

    def get_master_seed_hex(self) -> str:
        return self._seed_bytes.hex()


__all__ = ["RandomSource", "RNGManager"]
