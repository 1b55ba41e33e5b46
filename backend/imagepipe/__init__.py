"""imagepipe — batch image processing pipelines over remote providers."""

__version__ = "0.1.0"
