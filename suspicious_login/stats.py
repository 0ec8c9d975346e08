import argparse
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

import pandas as pd

from .config import DAY, TrainingDataConfig
from .evaluate import EvaluationResult
from .exceptions import ServiceException
from .ingest import EVENT_COLUMNS, CsvEventLog, EventLog
from .store import DirectoryModelStore


@dataclass(frozen=True)
class CorpusStatistics:
    total: int
    distinct_pairs: int


def events_frame(event_log: EventLog) -> pd.DataFrame:
    if hasattr(event_log, "frame"):
        return event_log.frame()
    events = event_log.query_events(0)
    return pd.DataFrame(
        [(e.ip, e.uid, e.timestamp) for e in events],
        columns=EVENT_COLUMNS,
    )


def corpus_statistics(event_log: EventLog) -> CorpusStatistics:
    df = events_frame(event_log)
    if df.empty:
        return CorpusStatistics(total=0, distinct_pairs=0)
    return CorpusStatistics(
        total=int(len(df)),
        distinct_pairs=int(len(df[["ip", "uid"]].drop_duplicates())),
    )


def _fmt_time(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def _pct(x: float) -> str:
    return f"{x * 100:.1f}"


def format_report(
    stats: CorpusStatistics,
    history: Sequence[Tuple[dict, Optional[EvaluationResult]]],
    threshold: int,
) -> str:
    lines: List[str] = [
        "Training data statistics",
        f"  So far {stats.total} logins have been captured, of which "
        f"{stats.distinct_pairs} are distinct (IP, UID) tuples.",
        "",
        "Classifier model statistics",
    ]

    if not history:
        days = max(1, threshold // DAY)
        lines.append(
            "  No classifier model has been trained yet. Training requires logins "
            f"of at least {days} days to be captured."
        )
        return "\n".join(lines)

    meta, evaluation = history[-1]
    if evaluation is None:
        lines.append(
            f"  The latest {meta['strategy']} model (trained {_fmt_time(meta['trained_at'])}) "
            "has not been evaluated yet."
        )
    else:
        lines.append(
            f"  During evaluation, the latest {meta['strategy']} model (trained {_fmt_time(meta['trained_at'])}) "
            f"captured {_pct(evaluation.recall)}% of all suspicious logins (recall), whereas "
            f"{_pct(evaluation.precision)}% of the logins classified as suspicious are indeed "
            "suspicious (precision)."
        )

    lines += ["", f"  {'trained':<22}{'strategy':<10}{'precision':>10}{'recall':>10}"]
    for meta, evaluation in history:
        if evaluation is None:
            p, r = "-", "-"
        else:
            p, r = _pct(evaluation.precision), _pct(evaluation.recall)
        lines.append(f"  {_fmt_time(meta['trained_at']):<22}{meta['strategy']:<10}{p:>10}{r:>10}")
    return "\n".join(lines)


def build_parser(p: Optional[argparse.ArgumentParser] = None) -> argparse.ArgumentParser:
    p = p or argparse.ArgumentParser(prog="suspicious-login stats")
    p.add_argument("--events", type=str, required=True, help="CSV export of captured logins (ip,uid,timestamp)")
    p.add_argument("--model-dir", type=str, default="", help="directory trained models are stored in")
    return p


def run(args) -> int:
    try:
        stats = corpus_statistics(CsvEventLog(args.events))
    except ServiceException as ex:
        print(f"Could not compute statistics: {ex.message}")
        return 1
    history = DirectoryModelStore(args.model_dir).history() if args.model_dir else []
    print(format_report(stats, history, TrainingDataConfig.default().threshold))
    return 0


def main(argv=None) -> int:
    return run(build_parser().parse_args(argv))


if __name__ == "__main__":
    sys.exit(main())
