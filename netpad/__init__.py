"""NetPad Deploy - publish NetPad bundles to hosting providers."""

__version__ = "0.1.0"
