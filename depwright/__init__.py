"""depwright - dependency detection and installation toolkit."""

__version__ = "0.1.0"
