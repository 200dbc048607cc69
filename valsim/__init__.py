from importlib.metadata import version

__version__ = version("valsim")

from . import models, sims, sources, stats, utils

__all__ = ["__version__", "models", "sims", "sources", "stats", "utils"]
