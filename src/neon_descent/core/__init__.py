from .random import RandomSource, RNGManager

__all__ = ["RandomSource", "RNGManager"]
