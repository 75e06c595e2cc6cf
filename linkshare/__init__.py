"""linkshare — a small link-sharing web application."""

__version__ = "1.0.0"
