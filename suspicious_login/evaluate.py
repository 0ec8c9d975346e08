"""Retrospective evaluation of a trained model on the validation pool.

The positive class of the metrics is "suspicious": recall is the share of
synthesized logins the model flags, precision the share of flagged logins
that really were synthesized.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
from sklearn.metrics import confusion_matrix, precision_score, recall_score

from .dataset import SampleSet
from .exceptions import EvaluationUnavailable
from .models import Model
from .utils import get_logger

logger = get_logger(__name__)

DECISION_THRESHOLD = 0.5


@dataclass(frozen=True)
class EvaluationResult:
    precision: float
    recall: float
    evaluated_against: int
    samples: int = 0
    tp: int = 0
    fp: int = 0
    fn: int = 0
    tn: int = 0

    def to_dict(self) -> dict:
        return {
            "precision": self.precision,
            "recall": self.recall,
            "evaluated_against": self.evaluated_against,
            "samples": self.samples,
            "tp": self.tp,
            "fp": self.fp,
            "fn": self.fn,
            "tn": self.tn,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "EvaluationResult":
        return cls(**{k: d[k] for k in cls.__dataclass_fields__ if k in d})


def evaluate(model: Model, validation: SampleSet) -> EvaluationResult:
    if len(validation) == 0:
        raise EvaluationUnavailable("validation data is empty")
    if validation.X.shape[1] != model.feature_width:
        raise EvaluationUnavailable(
            f"validation vectors have width {validation.X.shape[1]}, "
            f"the {model.strategy} model expects {model.feature_width}"
        )

    y_true = validation.suspicious.astype(np.int64)
    y_pred = (model.predict_proba(validation.X) >= DECISION_THRESHOLD).astype(np.int64)

    tn, fp, fn, tp = confusion_matrix(y_true, y_pred, labels=[0, 1]).ravel()
    result = EvaluationResult(
        precision=float(precision_score(y_true, y_pred, zero_division=0)),
        recall=float(recall_score(y_true, y_pred, zero_division=0)),
        evaluated_against=model.trained_at,
        samples=len(validation),
        tp=int(tp),
        fp=int(fp),
        fn=int(fn),
        tn=int(tn),
    )
    logger.info(f"Evaluated model trained at {model.trained_at}: precision={result.precision:.4f} recall={result.recall:.4f}")
    return result


def try_evaluate(model: Model, validation: SampleSet) -> Optional[EvaluationResult]:
    """Like ``evaluate`` but returns None when the model is not evaluable."""
    try:
        return evaluate(model, validation)
    except EvaluationUnavailable as ex:
        logger.warning(f"Model trained at {model.trained_at} is not evaluable yet: {ex.message}")
        return None
