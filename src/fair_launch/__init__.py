"""Client-side decision logic for a fair launch auction and lottery-gated mint."""

__version__ = "0.1.0"
