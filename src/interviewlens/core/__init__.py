"""核心业务逻辑：平滑、采样、变化追踪与聚合。"""

from .aggregator import Cycle, SessionAggregator
from .change_tracker import StateChangeTracker
from .sampler import AdaptiveSampler
from .smoothing import BinarySmoother, CategoricalSmoother, SmootherKind, create_smoother

__all__ = [
    "AdaptiveSampler",
    "BinarySmoother",
    "CategoricalSmoother",
    "Cycle",
    "SessionAggregator",
    "SmootherKind",
    "StateChangeTracker",
    "create_smoother",
]
