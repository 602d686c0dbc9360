"""User programs of a small teaching system, a shell, and a model of Sv39 page tables."""

__version__ = "0.1.0"