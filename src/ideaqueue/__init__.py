"""ideaqueue — stage-gated review pipeline for product ideas."""

__version__ = "0.3.0"
