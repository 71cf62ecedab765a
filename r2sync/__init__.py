"""One-way sync from a local directory to an S3-compatible bucket prefix."""

__version__ = "0.1.0"
