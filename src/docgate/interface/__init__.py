"""Data interface and dispatcher."""

from docgate.interface.model import ModelInterface
from docgate.interface.simple import SimpleModelInterface

__all__ = ["ModelInterface", "SimpleModelInterface"]
