#!/usr/bin/env python3
"""
CLI wrapper for the synthetic login log generator.

Example:
  python scripts/generate_synth_dataset.py --out-dir data/synth --days 30 --n-users 50 --target-logins 1000 --seed 42
  suspicious-login train --events data/synth/logins.csv --out models --stats
"""
from __future__ import annotations
import argparse
from suspicious_login.synth.generator import SynthConfig, generate

def main():
    p = argparse.ArgumentParser()
    p.add_argument("--out-dir", default="data/synth", help="Output directory for the generated CSV/JSON files")
    p.add_argument("--start-utc", default="2026-01-01T00:00:00Z", help="Start timestamp (ISO 8601, Z)")
    p.add_argument("--days", type=int, default=30)
    p.add_argument("--n-users", type=int, default=50)
    p.add_argument("--addresses-per-user", type=int, default=3)
    p.add_argument("--target-logins", type=int, default=1000)
    p.add_argument("--user-activity-skew", type=float, default=1.15)
    p.add_argument("--roaming-rate", type=float, default=0.02)
    p.add_argument("--v6-share", type=float, default=0.0)
    p.add_argument("--seed", type=int, default=42)
    args = p.parse_args()

    cfg = SynthConfig(
        start_utc=args.start_utc,
        days=args.days,
        n_users=args.n_users,
        addresses_per_user=args.addresses_per_user,
        target_logins=args.target_logins,
        user_activity_skew=args.user_activity_skew,
        roaming_rate=args.roaming_rate,
        v6_share=args.v6_share,
        out_dir=args.out_dir,
        seed=args.seed,
    )
    paths = generate(cfg)
    print("Generated:")
    for k, v in paths.items():
        print(f"  {k}: {v}")

if __name__ == "__main__":
    main()
