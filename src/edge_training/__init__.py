"""On-device training and evaluation engine for federated-learning clients."""

__version__ = "0.0.1"
