"""Correlate rendered images with the network transfers that produced them."""

__version__ = "0.1.0"
