from . import constants, logging, time

__all__ = ["constants", "logging", "time"]
