"""
Error taxonomy for the swipe engine.

Only configuration-level errors (and vector-math contract violations, which
are programmer errors) escape the engine. Per-item failures inside a batch
are logged and excluded; scorers never raise.
"""


class SwipeEngineError(Exception):
    """Base class for every error raised by the engine."""


class DimensionMismatch(SwipeEngineError, ValueError):
    """Two vectors that must share a dimension do not."""

    def __init__(self, expected: int, actual: int, context: str = ""):
        self.expected = expected
        self.actual = actual
        suffix = f" ({context})" if context else ""
        super().__init__(f"Dimension mismatch: expected {expected}, got {actual}{suffix}")


class ArityMismatch(SwipeEngineError, ValueError):
    """A weights list does not line up with the vectors it weights."""

    def __init__(self, vectors: int, weights: int):
        self.vectors = vectors
        self.weights = weights
        super().__init__(f"Got {weights} weights for {vectors} vectors")


class ConfigurationError(SwipeEngineError, ValueError):
    """Invalid engine configuration (dimension, weights, thresholds)."""


class ClusterConfigInvalid(ConfigurationError):
    """Invalid clustering parameters (epsilon, min_points, k, ...)."""


class EmbeddingUnavailable(SwipeEngineError):
    """The text embedder is down or returned something unusable.

    Raised inside the embedding services and recovered locally through the
    deterministic fallback; never surfaced to engine callers.
    """


class OperationCancelled(SwipeEngineError):
    """A batch operation hit its deadline or was cancelled."""
