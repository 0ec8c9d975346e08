import random

import numpy as np
import pytest

from suspicious_login.config import DAY, MlpConfig, TrainingDataConfig
from suspicious_login.dataset import (
    MIN_POSITIVE_SAMPLES,
    Label,
    NegativeSampler,
    TrainingDataAssembler,
    negative_count,
    partition,
)
from suspicious_login.exceptions import InsufficientDataException
from suspicious_login.features import IPv4Strategy, IPv6Strategy
from suspicious_login.ingest import LoginEvent, MemoryEventLog


def data_config(now):
    return TrainingDataConfig(threshold=7 * DAY, max_age=30 * DAY, now=now)


def test_partition_around_boundary(now):
    config = data_config(now)
    events = [
        LoginEvent("10.0.0.1", "a", now - 31 * DAY),  # too old
        LoginEvent("10.0.0.2", "a", now - 30 * DAY),  # oldest kept
        LoginEvent("10.0.0.3", "a", now - 7 * DAY - 1),
        LoginEvent("10.0.0.4", "a", now - 7 * DAY),  # boundary -> validation
        LoginEvent("10.0.0.5", "a", now),
        LoginEvent("10.0.0.6", "a", now + 1),  # future
    ]
    training, validation = partition(events, config)
    assert [e.ip for e in training] == ["10.0.0.2", "10.0.0.3"]
    assert [e.ip for e in validation] == ["10.0.0.4", "10.0.0.5"]


def test_shuffled_negative_count_follows_rate(split_log, now):
    mlp = MlpConfig(shuffled_negative_rate=0.5, random_negative_rate=0.0)
    data = TrainingDataAssembler(split_log).assemble(IPv4Strategy(), mlp, data_config(now), rng=random.Random(1))

    assert data.training.positives == 100
    assert data.training.shuffled_negatives == 50
    assert data.training.random_negatives == 0
    assert data.training.negatives == 50
    assert data.validation.positives == 30
    assert data.validation.shuffled_negatives == 15


def test_random_negative_count_rounds_down(split_log, now):
    mlp = MlpConfig(shuffled_negative_rate=0.0, random_negative_rate=0.25)
    data = TrainingDataAssembler(split_log).assemble(IPv4Strategy(), mlp, data_config(now), rng=random.Random(1))

    assert data.training.random_negatives + data.training.discarded_collisions == 25
    # floor(0.25 * 30)
    assert data.validation.random_negatives + data.validation.discarded_collisions == 7


@pytest.mark.parametrize("rate, pool_size, expected", [
    (0.29, 100, 29),
    (0.57, 100, 57),
    (0.7, 10, 7),
    (0.25, 30, 7),
    (1.0, 25, 25),
    (0.0, 100, 0),
])
def test_negative_count_is_exact_floor(rate, pool_size, expected):
    assert negative_count(rate, pool_size) == expected


def test_shuffled_count_is_not_lost_to_float_error(split_log, now):
    mlp = MlpConfig(shuffled_negative_rate=0.29, random_negative_rate=0.0)
    data = TrainingDataAssembler(split_log).assemble(IPv4Strategy(), mlp, data_config(now), rng=random.Random(1))

    assert data.training.shuffled_negatives + data.training.discarded_collisions == 29


def test_zero_rates_disable_negatives(split_log, now):
    mlp = MlpConfig(shuffled_negative_rate=0.0, random_negative_rate=0.0)
    data = TrainingDataAssembler(split_log).assemble(IPv4Strategy(), mlp, data_config(now), rng=random.Random(1))

    assert len(data.training) == 100
    assert data.training.negatives == 0
    assert np.all(data.training.y == Label.POSITIVE)


def test_samples_have_strategy_width(split_log, now):
    data = TrainingDataAssembler(split_log).assemble(IPv4Strategy(), MlpConfig(), data_config(now), rng=random.Random(2))
    assert data.training.X.shape == (len(data.training), IPv4Strategy().feature_width)
    assert data.training.suspicious.sum() == data.training.negatives


def test_assembly_is_reproducible_with_seeded_rng(split_log, now):
    assembler = TrainingDataAssembler(split_log)
    a = assembler.assemble(IPv4Strategy(), MlpConfig(), data_config(now), rng=random.Random(9))
    b = assembler.assemble(IPv4Strategy(), MlpConfig(), data_config(now), rng=random.Random(9))
    assert np.array_equal(a.training.X, b.training.X)
    assert np.array_equal(a.validation.y, b.validation.y)


def test_colliding_shuffled_pairs_are_discarded():
    # every account logs in from every address, so any recombination is a real pair
    pool = [LoginEvent(ip, uid, 0) for ip in ("10.0.0.1", "10.0.0.2") for uid in ("a", "b")]
    strategy = IPv4Strategy()
    real = {(e.uid, strategy.address_key(e.ip)) for e in pool}
    sampler = NegativeSampler(strategy, real, random.Random(0))

    assert sampler.shuffled(pool, 10) == []
    assert sampler.discarded == 10


def test_shuffled_negative_recombines_two_events():
    pool = [LoginEvent("10.0.0.1", "a", 0), LoginEvent("10.0.0.2", "b", 0)]
    strategy = IPv4Strategy()
    real = {(e.uid, strategy.address_key(e.ip)) for e in pool}
    negatives = NegativeSampler(strategy, real, random.Random(0)).shuffled(pool, 4)

    assert len(negatives) == 4
    assert {(n.ip, n.uid) for n in negatives} <= {("10.0.0.1", "b"), ("10.0.0.2", "a")}


def test_insufficient_validation_data(make_events, now):
    log = MemoryEventLog(
        make_events(100, now - 14 * DAY, prefix="10.1")
        + make_events(MIN_POSITIVE_SAMPLES - 1, now - 2 * DAY, prefix="10.2")
    )
    with pytest.raises(InsufficientDataException) as exc:
        TrainingDataAssembler(log).assemble(IPv4Strategy(), MlpConfig(), data_config(now), rng=random.Random(1))
    assert exc.value.details["pool"] == "validation"
    assert exc.value.code == "INSUFFICIENT_DATA"


def test_threshold_beyond_max_age_leaves_no_training_data(split_log, now):
    config = TrainingDataConfig(threshold=30 * DAY, max_age=20 * DAY, now=now)
    with pytest.raises(InsufficientDataException) as exc:
        TrainingDataAssembler(split_log).assemble(IPv4Strategy(), MlpConfig(), config, rng=random.Random(1))
    assert exc.value.details["pool"] == "training"


def test_other_family_events_are_skipped(split_log, now):
    for i in range(10):
        split_log.append(LoginEvent(f"2001:db8::{i + 1:x}", f"v6user{i}", now - DAY))

    data = TrainingDataAssembler(split_log).assemble(IPv4Strategy(), MlpConfig(), data_config(now), rng=random.Random(1))
    assert data.skipped_events == 10
    assert data.validation.positives == 30

    with pytest.raises(InsufficientDataException):
        TrainingDataAssembler(split_log).assemble(IPv6Strategy(), MlpConfig(), data_config(now), rng=random.Random(1))


def test_min_samples_is_configurable_per_assembler(make_events, now):
    log = MemoryEventLog(make_events(5, now - 14 * DAY, prefix="10.1") + make_events(5, now - DAY, prefix="10.2"))
    data = TrainingDataAssembler(log, min_samples=5).assemble(
        IPv4Strategy(), MlpConfig(), data_config(now), rng=random.Random(1))
    assert data.training.positives == 5
    assert data.summary()["window"]["boundary"] == now - 7 * DAY
