"""Command-line entrypoint for local train/test invocations.

Usage:
    edge-train                                       # defaults (train)
    edge-train mode=test data.label=test.txt         # evaluate
    edge-train directory=/data/client_3 training.epoch=5
"""

import sys
from pathlib import Path
from typing import Any

import hydra
from hydra.utils import to_absolute_path
from loguru import logger
from omegaconf import DictConfig, OmegaConf
from rich import box
from rich.console import Console
from rich.table import Table

from edge_training.backend import LocalBackend
from edge_training.io.results import ResultWriter
from edge_training.schemas.result import TestResult, TrainResult


def _summary_table(title: str, payload: dict[str, Any]) -> Table:
    table = Table(title=title, header_style="bold magenta", box=box.SQUARE)
    table.add_column("Field", style="cyan")
    table.add_column("Value", justify="right", style="green")
    for key, value in payload.items():
        if isinstance(value, bytes):
            value = f"<{len(value)} bytes>"
        elif isinstance(value, float):
            value = f"{value:.6f}"
        table.add_row(key, str(value))
    return table


def run(cfg: DictConfig) -> TrainResult | TestResult:
    """Run the invocation described by ``cfg`` and write its result."""
    backend = LocalBackend(seed=cfg.get("seed"))
    # Hydra may chdir into its run dir; resolve against the launch directory
    directory = to_absolute_path(cfg.directory)
    data_conf: Any = OmegaConf.to_container(cfg.data, resolve=True)
    writer = ResultWriter(Path(to_absolute_path(cfg.output_dir)))

    if cfg.mode == "train":
        train_conf: Any = OmegaConf.to_container(cfg.training, resolve=True)
        train_result = backend.train(directory, cfg.model, data_conf, train_conf)
        out_path = writer.write_train(train_result)
        Console().print(_summary_table("Training Result", train_result.to_payload()))
        logger.info(f"Result written to {out_path}")
        return train_result

    if cfg.mode == "test":
        test_conf: Any = OmegaConf.to_container(cfg.testing, resolve=True)
        test_result = backend.test(directory, cfg.model, data_conf, test_conf)
        out_path = writer.write_test(test_result)
        Console().print(_summary_table("Testing Result", test_result.to_payload()))
        logger.info(f"Result written to {out_path}")
        return test_result

    raise ValueError(f"Unknown mode: {cfg.mode!r} (expected 'train' or 'test')")


@hydra.main(version_base=None, config_path="conf", config_name="run")
def main(cfg: DictConfig) -> None:
    """Run a train or test invocation with the given Hydra config."""
    logger.remove()
    logger.add(sys.stderr, level=cfg.get("log_level", "INFO"))

    logger.info(f"Configuration:\n{OmegaConf.to_yaml(cfg)}")

    result = run(cfg)
    if isinstance(result, TrainResult) and not result.success:
        sys.exit(1)


if __name__ == "__main__":
    main()
