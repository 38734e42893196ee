"""Keep workspace documents in sync with Transifex resources."""

__version__ = "0.1.0"
