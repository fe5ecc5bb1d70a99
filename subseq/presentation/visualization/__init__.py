"""
Visualization package for the subsampling pipeline.
"""

from .plot_generator import PlotGenerator, plot

__all__ = ["PlotGenerator", "plot"]
