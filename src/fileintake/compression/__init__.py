from .compressor import NOISE_FLOOR, compress
from .strategies import STRATEGIES, StrategyKind, classify

__all__ = ["NOISE_FLOOR", "STRATEGIES", "StrategyKind", "classify", "compress"]
