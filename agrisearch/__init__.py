"""On-device semantic document index for agricultural records."""

__version__ = "0.1.0"
