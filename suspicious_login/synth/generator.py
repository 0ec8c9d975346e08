"""
Synthetic login log generator
=============================

Generates a reproducible login event log (logins.csv) for trying the training
pipeline without production data:

- users log in from a few habitual addresses (home, office, mobile network)
- a small share of logins come from a fresh address (travel, new provider)
- timestamps are spread uniformly over the time horizon

Design goals:
- Reproducible via seed
- Zipf-like user activity (a few heavy users, many occasional ones)
- IPv4 and IPv6 addresses, mixed by ``v6_share``

This generator produces *synthetic* data. It contains no real accounts.
"""

from __future__ import annotations

import csv
import ipaddress
import json
import os
import random
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from typing import Dict, List

from ..ingest import EVENT_COLUMNS, LoginEvent


@dataclass
class SynthConfig:
    # Time horizon
    start_utc: str = "2026-01-01T00:00:00Z"
    days: int = 30

    # Population
    n_users: int = 50
    addresses_per_user: int = 3

    # Activity scale
    target_logins: int = 1000

    # Heterogeneity / skew (Zipf-like)
    user_activity_skew: float = 1.15

    # Share of logins from an address the user never used before
    roaming_rate: float = 0.02
    # Share of users on IPv6 networks
    v6_share: float = 0.0

    # Output
    out_dir: str = "out_synth"
    seed: int = 42


def _parse_iso_z(s: str) -> datetime:
    # expects '...Z'
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return datetime.fromisoformat(s).astimezone(timezone.utc)


def _zipf_weights(n: int, s: float) -> List[float]:
    # p(k) ∝ 1/k^s for k=1..n
    weights = [1.0 / (k ** s) for k in range(1, n + 1)]
    total = sum(weights)
    return [w / total for w in weights]


def _choice_weighted(rng: random.Random, items: List[str], weights: List[float]) -> str:
    x = rng.random()
    cum = 0.0
    for item, w in zip(items, weights):
        cum += w
        if x <= cum:
            return item
    return items[-1]


def _rand_ts_in_window(rng: random.Random, start: datetime, end: datetime) -> datetime:
    span = (end - start).total_seconds()
    return start + timedelta(seconds=rng.random() * span)


def _rand_v4(rng: random.Random, network: int) -> str:
    # network is a /16 prefix
    return str(ipaddress.IPv4Address((network << 16) | rng.getrandbits(16)))


def _rand_v6(rng: random.Random, prefix: int) -> str:
    # prefix is a /64, the interface identifier is random as with privacy extensions
    return str(ipaddress.IPv6Address((prefix << 64) | rng.getrandbits(64)))


def _address_book(rng: random.Random, config: SynthConfig, users: List[str]) -> Dict[str, List[tuple]]:
    # A handful of provider networks shared by all users, so addresses cluster.
    v4_networks = [rng.randrange(1 << 16) for _ in range(8)]
    v6_networks = [(0x2001 << 48) | rng.getrandbits(48) for _ in range(8)]
    book = {}
    for u in users:
        v6 = rng.random() < config.v6_share
        habitual = []
        for _ in range(config.addresses_per_user):
            if v6:
                habitual.append(("v6", (rng.choice(v6_networks) & ~0xFFFF) | rng.getrandbits(16)))
            else:
                habitual.append(("v4", _rand_v4(rng, rng.choice(v4_networks))))
        book[u] = habitual
    return book


def generate_events(config: SynthConfig) -> List[LoginEvent]:
    """Generate login events in memory, ordered by timestamp."""
    rng = random.Random(config.seed)
    users = [f"user{idx:04d}" for idx in range(1, config.n_users + 1)]
    user_weights = _zipf_weights(config.n_users, config.user_activity_skew)
    book = _address_book(rng, config, users)

    start = _parse_iso_z(config.start_utc)
    end = start + timedelta(days=config.days)

    events = []
    for _ in range(config.target_logins):
        user = _choice_weighted(rng, users, user_weights)
        family, home = book[user][rng.randrange(len(book[user]))]
        if rng.random() < config.roaming_rate:
            if family == "v6":
                ip = _rand_v6(rng, rng.getrandbits(64))
            else:
                ip = str(ipaddress.IPv4Address(rng.getrandbits(32)))
        else:
            ip = _rand_v6(rng, home) if family == "v6" else home
        ts = _rand_ts_in_window(rng, start, end)
        events.append(LoginEvent(ip=ip, uid=user, timestamp=int(ts.timestamp())))

    events.sort(key=lambda e: e.timestamp)
    return events


def generate(config: SynthConfig) -> Dict[str, str]:
    """
    Generate dataset files and return file paths.
    """
    events = generate_events(config)
    os.makedirs(config.out_dir, exist_ok=True)

    logins_path = os.path.join(config.out_dir, "logins.csv")
    with open(logins_path, "w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(EVENT_COLUMNS)
        for e in events:
            w.writerow([e.ip, e.uid, e.timestamp])

    meta_path = os.path.join(config.out_dir, "dataset_meta.json")
    with open(meta_path, "w", encoding="utf-8") as f:
        json.dump({"config": asdict(config),
                   "generated_utc": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
                   "counts": {
                       "logins": len(events),
                       "users": len({e.uid for e in events}),
                       "distinct_pairs": len({(e.ip, e.uid) for e in events}),
                   }}, f, indent=2)

    return {
        "logins": logins_path,
        "meta": meta_path,
    }
