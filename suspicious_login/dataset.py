"""Training data assembly.

Turns the captured login log into labeled training and validation sample sets:

1. load every event newer than ``now - max_age`` (and not after ``now``)
2. split at ``now - threshold``: older events train, newer events validate
3. every real login becomes a positive sample
4. each pool gets synthetic negatives, ``floor(rate * pool size)`` of each kind:

   * shuffled: the address of one login paired with the account of another
   * random: a uniformly drawn address paired with an account from the pool

Synthetic pairs that happen to match a real (address, account) pair are
dropped without retry.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Set, Tuple

import numpy as np

from .config import MlpConfig, TrainingDataConfig
from .exceptions import InsufficientDataException
from .features import ClassificationStrategy
from .ingest import EventLog, LoginEvent
from .utils import get_logger

logger = get_logger(__name__)

# Fewest real logins either pool may hold before training is refused.
MIN_POSITIVE_SAMPLES = 25


class Label(IntEnum):
    NEGATIVE = 0
    POSITIVE = 1


@dataclass
class SampleSet:
    X: np.ndarray
    y: np.ndarray
    shuffled_negatives: int = 0
    random_negatives: int = 0
    discarded_collisions: int = 0

    def __len__(self) -> int:
        return int(self.y.shape[0])

    @property
    def positives(self) -> int:
        return int((self.y == Label.POSITIVE).sum())

    @property
    def negatives(self) -> int:
        return int((self.y == Label.NEGATIVE).sum())

    @property
    def suspicious(self) -> np.ndarray:
        """Binary target for the classifier: 1.0 for synthesized logins."""
        return (self.y == Label.NEGATIVE).astype(np.float32)

    def summary(self) -> Dict[str, int]:
        return {
            "samples": len(self),
            "positives": self.positives,
            "shuffled_negatives": self.shuffled_negatives,
            "random_negatives": self.random_negatives,
            "discarded_collisions": self.discarded_collisions,
        }


@dataclass
class TrainingData:
    training: SampleSet
    validation: SampleSet
    skipped_events: int = 0
    meta: Dict[str, int] = field(default_factory=dict)

    def summary(self) -> Dict[str, Dict[str, int]]:
        return {
            "training": self.training.summary(),
            "validation": self.validation.summary(),
            "window": dict(self.meta, skipped_events=self.skipped_events),
        }


def partition(events: List[LoginEvent], config: TrainingDataConfig) -> Tuple[List[LoginEvent], List[LoginEvent]]:
    """Split events into (training, validation) pools around the validation boundary."""
    oldest, boundary = config.oldest, config.validation_boundary
    training, validation = [], []
    for e in events:
        if e.timestamp < oldest or e.timestamp > config.now:
            continue
        if e.timestamp >= boundary:
            validation.append(e)
        else:
            training.append(e)
    return training, validation


class NegativeSampler:
    """Synthesizes negative logins for one pool."""

    def __init__(self, strategy: ClassificationStrategy, real_pairs: Set[Tuple[str, int]], rng: random.Random):
        self.strategy = strategy
        self.real_pairs = real_pairs
        self.rng = rng
        self.discarded = 0

    def _accept(self, uid: str, ip: str) -> bool:
        if (uid, self.strategy.address_key(ip)) in self.real_pairs:
            self.discarded += 1
            return False
        return True

    def shuffled(self, pool: List[LoginEvent], n: int) -> List[LoginEvent]:
        out: List[LoginEvent] = []
        if len(pool) < 2:
            return out
        for _ in range(n):
            i = self.rng.randrange(len(pool))
            j = self.rng.randrange(len(pool) - 1)
            if j >= i:
                j += 1
            ip, uid = pool[i].ip, pool[j].uid
            if self._accept(uid, ip):
                out.append(LoginEvent(ip=ip, uid=uid, timestamp=pool[j].timestamp))
        return out

    def random(self, pool: List[LoginEvent], n: int) -> List[LoginEvent]:
        out: List[LoginEvent] = []
        if not pool:
            return out
        for _ in range(n):
            owner = pool[self.rng.randrange(len(pool))]
            ip = self.strategy.random_ip(self.rng)
            if self._accept(owner.uid, ip):
                out.append(LoginEvent(ip=ip, uid=owner.uid, timestamp=owner.timestamp))
        return out


def negative_count(rate: float, pool_size: int) -> int:
    # round first so 0.29 * 100 (28.999999999999996) counts as 29
    return math.floor(round(rate * pool_size, 9))


def build_samples(
    pool: List[LoginEvent],
    strategy: ClassificationStrategy,
    mlp_config: MlpConfig,
    sampler: NegativeSampler,
) -> SampleSet:
    before = sampler.discarded
    shuffled = sampler.shuffled(pool, negative_count(mlp_config.shuffled_negative_rate, len(pool)))
    randoms = sampler.random(pool, negative_count(mlp_config.random_negative_rate, len(pool)))

    X = strategy.extract_batch(pool + shuffled + randoms)
    y = np.concatenate([
        np.full(len(pool), Label.POSITIVE, dtype=np.int64),
        np.full(len(shuffled) + len(randoms), Label.NEGATIVE, dtype=np.int64),
    ])
    return SampleSet(
        X=X,
        y=y,
        shuffled_negatives=len(shuffled),
        random_negatives=len(randoms),
        discarded_collisions=sampler.discarded - before,
    )


class TrainingDataAssembler:
    def __init__(self, event_log: EventLog, min_samples: int = MIN_POSITIVE_SAMPLES):
        self.event_log = event_log
        self.min_samples = min_samples

    def collect(self, strategy: ClassificationStrategy, config: TrainingDataConfig) -> Tuple[List[LoginEvent], int]:
        """Query the log and keep the events that belong to the strategy's family."""
        events = self.event_log.query_events(config.oldest)
        kept = [e for e in events if strategy.is_valid_ip(e.ip)]
        skipped = len(events) - len(kept)
        if skipped:
            logger.info(f"Skipped {skipped} events that are not {strategy.type_name()} logins")
        return kept, skipped

    def assemble(
        self,
        strategy: ClassificationStrategy,
        mlp_config: MlpConfig,
        config: TrainingDataConfig,
        rng: Optional[random.Random] = None,
    ) -> TrainingData:
        rng = rng or random.Random()
        events, skipped = self.collect(strategy, config)
        training_pool, validation_pool = partition(events, config)

        for name, pool in (("training", training_pool), ("validation", validation_pool)):
            if len(pool) < self.min_samples:
                raise InsufficientDataException(
                    f"{name} data has {len(pool)} logins, at least {self.min_samples} are required",
                    details={"pool": name, "positives": len(pool), "required": self.min_samples},
                )

        real_pairs = {(e.uid, strategy.address_key(e.ip)) for e in training_pool + validation_pool}
        sampler = NegativeSampler(strategy, real_pairs, rng)
        training = build_samples(training_pool, strategy, mlp_config, sampler)
        validation = build_samples(validation_pool, strategy, mlp_config, sampler)

        data = TrainingData(
            training=training,
            validation=validation,
            skipped_events=skipped,
            meta={"boundary": config.validation_boundary, "oldest": config.oldest, "now": config.now},
        )
        logger.info(
            f"Assembled {len(training)} training samples ({training.positives} positive) and "
            f"{len(validation)} validation samples ({validation.positives} positive)"
        )
        return data
