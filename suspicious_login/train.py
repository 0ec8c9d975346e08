import argparse
import random
import sys
from dataclasses import dataclass, field
from typing import Dict, Optional

import torch
from torch.utils.data import DataLoader, TensorDataset

from .config import MlpConfig, TrainingDataConfig
from .dataset import SampleSet, TrainingDataAssembler
from .evaluate import EvaluationResult, try_evaluate
from .exceptions import InsufficientDataException, ServiceException
from .features import ClassificationStrategy, strategy_for_family
from .ingest import CsvEventLog, EventLog
from .models import LoginMLP, Model, loss_fn
from .stats import corpus_statistics, format_report
from .store import DirectoryModelStore, ModelSink
from .utils import get_logger, set_seed

logger = get_logger(__name__)


@dataclass
class TrainingResult:
    model: Model
    evaluation: Optional[EvaluationResult]
    data: Dict[str, dict] = field(default_factory=dict)
    seed: int = 0


def _diverged(ep: int, cfg: MlpConfig, reason: str) -> ServiceException:
    return ServiceException(
        f"training diverged in epoch {ep+1}/{cfg.epochs} ({reason})",
        details={"epoch": ep + 1, "learning_rate": cfg.learning_rate},
    )


def _is_finite(model: LoginMLP, X: torch.Tensor) -> bool:
    with torch.no_grad():
        if not all(torch.isfinite(p).all() for p in model.parameters()):
            return False
        # huge but finite weights can still overflow in the forward pass
        return bool(torch.isfinite(model(X)).all())


def train_mlp(training: SampleSet, cfg: MlpConfig, n_features: int, seed: int) -> LoginMLP:
    X = torch.from_numpy(training.X)
    ds = TensorDataset(X, torch.from_numpy(training.suspicious))
    dl = DataLoader(ds, batch_size=cfg.batch_size, shuffle=True,
                    generator=torch.Generator().manual_seed(seed))

    set_seed(seed)
    model = LoginMLP(n_features, cfg.layers)
    opt = torch.optim.Adam(model.parameters(), lr=cfg.learning_rate)

    model.train()
    for ep in range(cfg.epochs):
        total = 0.0
        for bx, by in dl:
            opt.zero_grad()
            loss = loss_fn(model(bx), by)
            if not torch.isfinite(loss):
                raise _diverged(ep, cfg, f"loss={loss.item()}")
            loss.backward()
            try:
                opt.step()
            except RuntimeError as ex:
                raise _diverged(ep, cfg, str(ex)) from ex
            total += loss.item() * bx.size(0)
        if not _is_finite(model, X):
            raise _diverged(ep, cfg, "non-finite weights or outputs")
        logger.info(f"[mlp] epoch {ep+1}/{cfg.epochs} loss={total/len(ds):.4f}")
    return model


class Trainer:
    """Runs one training invocation: collect, train, evaluate.

    ``seed`` fixes every source of randomness (negative sampling, weight
    initialization, batch order); without it each run draws a fresh seed.
    """

    def __init__(
        self,
        event_log: EventLog,
        assembler: Optional[TrainingDataAssembler] = None,
        sink: Optional[ModelSink] = None,
        seed: Optional[int] = None,
    ):
        self.event_log = event_log
        self.assembler = assembler or TrainingDataAssembler(event_log)
        self.sink = sink
        self.seed = seed

    def _run_seed(self) -> int:
        if self.seed is not None:
            return self.seed
        return random.SystemRandom().randrange(2 ** 31)

    def fit(
        self,
        training: SampleSet,
        mlp_config: MlpConfig,
        strategy: ClassificationStrategy,
        trained_at: int,
        data_config: TrainingDataConfig,
        seed: int,
    ) -> Model:
        if len(training) == 0:
            raise ServiceException("training data is empty")
        if training.X.shape[1] != strategy.feature_width:
            raise ServiceException(
                f"training vectors have width {training.X.shape[1]}, "
                f"{strategy.type_name()} expects {strategy.feature_width}"
            )

        network = train_mlp(training, mlp_config, strategy.feature_width, seed)
        return Model(
            network=network,
            trained_at=trained_at,
            address_family=strategy.address_family,
            strategy=strategy.type_name(),
            feature_width=strategy.feature_width,
            mlp_config=mlp_config,
            data_config=data_config,
        )

    def train(
        self,
        mlp_config: MlpConfig,
        data_config: TrainingDataConfig,
        strategy: ClassificationStrategy,
    ) -> TrainingResult:
        seed = self._run_seed()
        data = self.assembler.assemble(strategy, mlp_config, data_config, rng=random.Random(seed))

        model = self.fit(data.training, mlp_config, strategy, data_config.now, data_config, seed)
        evaluation = try_evaluate(model, data.validation)

        if self.sink is not None:
            self.sink.save(model, evaluation)
        return TrainingResult(model=model, evaluation=evaluation, data=data.summary(), seed=seed)


def build_parser(p: Optional[argparse.ArgumentParser] = None) -> argparse.ArgumentParser:
    p = p or argparse.ArgumentParser(prog="suspicious-login train")
    p.add_argument("--events", type=str, required=True, help="CSV export of captured logins (ip,uid,timestamp)")
    p.add_argument("--out", type=str, default="", help="directory trained models are stored in")
    p.add_argument("-e", "--epochs", type=int, help="number of epochs to train")
    p.add_argument("-l", "--layers", type=int, help="number of hidden layers")
    p.add_argument("--shuffled", type=float, help="ratio of shuffled negative samples")
    p.add_argument("--random", type=float, help="ratio of random negative samples")
    p.add_argument("--learn-rate", type=float, help="learning rate")
    p.add_argument("--validation-threshold", type=int,
                   help="seconds of the most recent data used for validation, the default is one week")
    p.add_argument("--max-age", type=int, help="maximum age of training data in seconds")
    p.add_argument("--now", type=int, help="overwrite the current time (unix seconds)")
    p.add_argument("--v6", action="store_true", help="train with IPv6 data")
    p.add_argument("--seed", type=int, help="fix the random seed for a reproducible run")
    p.add_argument("--stats", action="store_true", help="print corpus and model statistics after training")
    return p


def configs_from_args(args, strategy: ClassificationStrategy):
    """Apply each option present on the command line to exactly one config field."""
    config = strategy.default_mlp_config()
    if args.epochs is not None:
        config = config.set_epochs(args.epochs)
    if args.layers is not None:
        config = config.set_layers(args.layers)
    if args.shuffled is not None:
        config = config.set_shuffled_negative_rate(args.shuffled)
    if args.random is not None:
        config = config.set_random_negative_rate(args.random)
    if args.learn_rate is not None:
        config = config.set_learning_rate(args.learn_rate)

    data_config = TrainingDataConfig.default(now=args.now)
    if args.validation_threshold is not None:
        data_config = data_config.set_threshold(args.validation_threshold)
    if args.max_age is not None:
        data_config = data_config.set_max_age(args.max_age)
    return config, data_config


def run(args) -> int:
    strategy = strategy_for_family("v6" if args.v6 else "v4")
    try:
        config, data_config = configs_from_args(args, strategy)
    except ValueError as ex:
        print(f"Invalid configuration: {ex}", file=sys.stderr)
        return 2

    event_log = CsvEventLog(args.events)
    store = DirectoryModelStore(args.out) if args.out else None
    if args.seed is not None:
        torch.set_num_threads(1)
    trainer = Trainer(event_log, sink=store, seed=args.seed)

    try:
        print(f"Using {strategy.type_name()} strategy")
        result = trainer.train(config, data_config, strategy)
    except InsufficientDataException as ex:
        print(f"Not enough data, try again later ({ex.message})")
        return 1
    except ServiceException as ex:
        print(f"Could not train a model: {ex.message}")
        return 1

    if args.stats:
        history = store.history() if store else [(result.model.meta(), result.evaluation)]
        print(format_report(corpus_statistics(event_log), history, data_config.threshold))
    elif result.evaluation is not None:
        print(f"Precision: {result.evaluation.precision:.4f} Recall: {result.evaluation.recall:.4f}")
    else:
        print("The model could not be evaluated")
    return 0


def main(argv=None) -> int:
    return run(build_parser().parse_args(argv))


if __name__ == "__main__":
    sys.exit(main())
