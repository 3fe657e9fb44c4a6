"""Traffic simulator for the inbox API."""

from .sim import ISim, Sim

__all__ = ["ISim", "Sim"]
