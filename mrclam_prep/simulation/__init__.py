"""Trajectory and measurement simulator."""

from .simulator import Simulator

__all__ = ["Simulator"]
