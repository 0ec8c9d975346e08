import numbers
import time
from dataclasses import dataclass, replace
from typing import Optional

DAY = 24 * 60 * 60


def _require_int(name, value):
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class MlpConfig:
    epochs: int = 30
    layers: int = 2
    shuffled_negative_rate: float = 0.5
    random_negative_rate: float = 0.5
    learning_rate: float = 0.005
    batch_size: int = 64

    def __post_init__(self):
        for name in ("epochs", "layers", "batch_size"):
            _require_int(name, getattr(self, name))
        if self.epochs <= 0:
            raise ValueError(f"epochs must be positive, got {self.epochs}")
        if self.layers < 1:
            raise ValueError(f"layers must be at least 1, got {self.layers}")
        for name in ("shuffled_negative_rate", "random_negative_rate"):
            rate = getattr(self, name)
            if not 0.0 <= rate <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {rate}")
        if not self.learning_rate > 0:
            raise ValueError(f"learning_rate must be positive, got {self.learning_rate}")
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")

    # Each setter returns a copy with exactly one field changed.
    def set_epochs(self, epochs: int) -> "MlpConfig":
        return replace(self, epochs=epochs)

    def set_layers(self, layers: int) -> "MlpConfig":
        return replace(self, layers=layers)

    def set_shuffled_negative_rate(self, rate: float) -> "MlpConfig":
        return replace(self, shuffled_negative_rate=rate)

    def set_random_negative_rate(self, rate: float) -> "MlpConfig":
        return replace(self, random_negative_rate=rate)

    def set_learning_rate(self, learning_rate: float) -> "MlpConfig":
        return replace(self, learning_rate=learning_rate)

    def set_batch_size(self, batch_size: int) -> "MlpConfig":
        return replace(self, batch_size=batch_size)


@dataclass(frozen=True)
class TrainingDataConfig:
    # Seconds. Events at or after now - threshold are used for validation,
    # events before now - max_age are ignored.
    threshold: int
    max_age: int
    now: int

    def __post_init__(self):
        for name in ("threshold", "max_age", "now"):
            _require_int(name, getattr(self, name))
        if self.threshold < 0:
            raise ValueError(f"threshold must not be negative, got {self.threshold}")
        if self.max_age <= 0:
            raise ValueError(f"max_age must be positive, got {self.max_age}")
        if self.now < 0:
            raise ValueError(f"now must not be negative, got {self.now}")

    @classmethod
    def default(cls, now: Optional[int] = None) -> "TrainingDataConfig":
        return cls(
            threshold=7 * DAY,
            max_age=60 * DAY,
            now=int(time.time()) if now is None else now,
        )

    @property
    def validation_boundary(self) -> int:
        return self.now - self.threshold

    @property
    def oldest(self) -> int:
        return self.now - self.max_age

    def set_threshold(self, threshold: int) -> "TrainingDataConfig":
        return replace(self, threshold=threshold)

    def set_max_age(self, max_age: int) -> "TrainingDataConfig":
        return replace(self, max_age=max_age)

    def set_now(self, now: int) -> "TrainingDataConfig":
        return replace(self, now=now)
