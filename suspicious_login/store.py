import os
from typing import List, Optional, Protocol, Tuple

import torch

from .evaluate import EvaluationResult
from .models import Model
from .utils import ensure_dir, load_json, save_json


class ModelSink(Protocol):
    def save(self, model: Model, evaluation: Optional[EvaluationResult]) -> None:
        ...


class MemoryModelSink:
    def __init__(self):
        self.saved: List[Tuple[Model, Optional[EvaluationResult]]] = []

    def save(self, model: Model, evaluation: Optional[EvaluationResult]) -> None:
        self.saved.append((model, evaluation))

    def history(self) -> List[Tuple[dict, Optional[EvaluationResult]]]:
        return [(m.meta(), e) for m, e in sorted(self.saved, key=lambda s: s[0].trained_at)]


class DirectoryModelStore:
    """One sub-directory per model: ``<trained_at>-<family>/{model.pt,meta.json}``."""

    def __init__(self, root: str):
        self.root = root

    def save(self, model: Model, evaluation: Optional[EvaluationResult]) -> str:
        out = os.path.join(self.root, f"{model.trained_at}-{model.address_family.value}")
        ensure_dir(out)
        torch.save(model.network.state_dict(), f"{out}/model.pt")
        save_json(f"{out}/meta.json", {
            "model": model.meta(),
            "evaluation": evaluation.to_dict() if evaluation else None,
        })
        return out

    def history(self) -> List[Tuple[dict, Optional[EvaluationResult]]]:
        if not os.path.isdir(self.root):
            return []
        entries = []
        for name in sorted(os.listdir(self.root)):
            meta_path = os.path.join(self.root, name, "meta.json")
            if not os.path.exists(meta_path):
                continue
            meta = load_json(meta_path)
            ev = meta.get("evaluation")
            entries.append((meta["model"], EvaluationResult.from_dict(ev) if ev else None))
        return sorted(entries, key=lambda e: e[0]["trained_at"])
