"""Result serialization."""

from edge_training.io.results import ResultWriter

__all__ = ["ResultWriter"]
