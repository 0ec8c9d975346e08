import argparse
import sys

from . import stats, train


def main(argv=None) -> int:
    p = argparse.ArgumentParser(prog="suspicious-login", description="Suspicious login classifier training")
    sp = p.add_subparsers(dest="cmd", required=True)

    train.build_parser(sp.add_parser("train", help="Train a classifier on captured logins"))
    stats.build_parser(sp.add_parser("stats", help="Show training data and model statistics"))

    args = p.parse_args(argv)

    if args.cmd == "train":
        return train.run(args)
    elif args.cmd == "stats":
        return stats.run(args)
    return 2


if __name__ == "__main__":
    sys.exit(main())
