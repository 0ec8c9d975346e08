from dataclasses import dataclass
from datetime import timezone
from typing import Iterable, List, Protocol

import pandas as pd
from dateutil import parser as dtparser

from .exceptions import ServiceException

EVENT_COLUMNS = ["ip", "uid", "timestamp"]


@dataclass(frozen=True)
class LoginEvent:
    ip: str
    uid: str
    timestamp: int  # unix seconds


class EventLog(Protocol):
    """Read side of the captured login log."""

    def query_events(self, since: int) -> List[LoginEvent]:
        """Return events with ``timestamp >= since`` ordered by timestamp."""
        ...


class MemoryEventLog:
    def __init__(self, events: Iterable[LoginEvent] = ()):
        self._events = sorted(events, key=lambda e: e.timestamp)

    def append(self, event: LoginEvent) -> None:
        self._events.append(event)
        self._events.sort(key=lambda e: e.timestamp)

    def query_events(self, since: int) -> List[LoginEvent]:
        return [e for e in self._events if e.timestamp >= since]

    def __len__(self) -> int:
        return len(self._events)


def _parse_ts(value) -> int:
    # ISO-8601 strings without an offset are taken as UTC
    dt = dtparser.parse(str(value))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


def read_events_frame(path: str) -> pd.DataFrame:
    """Load a login CSV (``ip,uid,timestamp``) into a normalised frame."""
    df = pd.read_csv(path, dtype={"ip": str, "uid": str})
    missing = [c for c in EVENT_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"{path} is missing columns: {', '.join(missing)}")

    df = df[EVENT_COLUMNS].dropna(subset=["ip", "uid"])
    numeric = pd.to_numeric(df["timestamp"], errors="coerce")
    unparsed = numeric.isna() & df["timestamp"].notna()
    if unparsed.any():
        numeric[unparsed] = df.loc[unparsed, "timestamp"].map(_parse_ts)
    df = df.assign(timestamp=numeric).dropna(subset=["timestamp"]).copy()
    df["timestamp"] = df["timestamp"].astype("int64")
    df["ip"] = df["ip"].str.strip()
    df["uid"] = df["uid"].str.strip()
    return df.sort_values("timestamp", kind="stable").reset_index(drop=True)


class CsvEventLog:
    """Event log backed by a CSV export; every query re-reads the file."""

    def __init__(self, path: str):
        self.path = path

    def frame(self) -> pd.DataFrame:
        try:
            return read_events_frame(self.path)
        except (OSError, ValueError) as ex:
            # dateutil.ParserError and pandas parse errors are ValueErrors
            raise ServiceException(
                f"cannot read login events from {self.path}: {ex}",
                details={"path": self.path},
            ) from ex

    def query_events(self, since: int) -> List[LoginEvent]:
        df = self.frame()
        df = df[df["timestamp"] >= since]
        return [
            LoginEvent(ip=ip, uid=uid, timestamp=int(ts))
            for ip, uid, ts in zip(df["ip"], df["uid"], df["timestamp"])
        ]
