"""Smoke test: verify the edge_training package is importable."""

import edge_training


def test_package_version() -> None:
    """Package must declare a __version__ string."""
    assert isinstance(edge_training.__version__, str)
    assert edge_training.__version__ == "0.0.1"
