"""Perceptual image optimizer."""

__version__ = "0.4.0"
