from dataclasses import dataclass
from typing import Dict

import numpy as np
import torch
import torch.nn as nn
import torch.nn.functional as F

from .config import MlpConfig, TrainingDataConfig
from .features import AddressFamily


class LoginMLP(nn.Module):
    """Feed-forward net: ``layers`` hidden ReLU blocks, one suspicious-login logit."""

    def __init__(self, n_features: int, layers: int, hidden_dim: int = 0):
        super().__init__()
        hidden_dim = hidden_dim or n_features
        blocks = []
        width = n_features
        for _ in range(layers):
            blocks += [nn.Linear(width, hidden_dim), nn.ReLU()]
            width = hidden_dim
        self.hidden = nn.Sequential(*blocks)
        self.out = nn.Linear(width, 1)

    def forward(self, x):
        return self.out(self.hidden(x)).squeeze(-1)


def loss_fn(logits, target):
    return F.binary_cross_entropy_with_logits(logits, target)


@dataclass(frozen=True)
class Model:
    network: LoginMLP
    trained_at: int
    address_family: AddressFamily
    strategy: str
    feature_width: int
    mlp_config: MlpConfig
    data_config: TrainingDataConfig

    def __post_init__(self):
        self.network.eval()
        for p in self.network.parameters():
            p.requires_grad_(False)

    def predict_proba(self, X: np.ndarray) -> np.ndarray:
        """Probability that each row is a suspicious login."""
        X = np.asarray(X, dtype=np.float32)
        if X.ndim == 1:
            X = X.reshape(1, -1)
        with torch.no_grad():
            logits = self.network(torch.from_numpy(X))
            return torch.sigmoid(logits).numpy()

    def parameters(self) -> Dict[str, torch.Tensor]:
        return {k: v.detach().clone() for k, v in self.network.state_dict().items()}

    def meta(self) -> dict:
        return {
            "trained_at": self.trained_at,
            "address_family": self.address_family.value,
            "strategy": self.strategy,
            "feature_width": self.feature_width,
            "epochs": self.mlp_config.epochs,
            "layers": self.mlp_config.layers,
            "shuffled_negative_rate": self.mlp_config.shuffled_negative_rate,
            "random_negative_rate": self.mlp_config.random_negative_rate,
            "learning_rate": self.mlp_config.learning_rate,
            "batch_size": self.mlp_config.batch_size,
            "threshold": self.data_config.threshold,
            "max_age": self.data_config.max_age,
        }
