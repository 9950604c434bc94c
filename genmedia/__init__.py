"""Generative media gateway: one interface over image, video and text generation backends."""

__version__ = "1.0.0"
