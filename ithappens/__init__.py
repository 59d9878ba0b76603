"""Archive, parse and search the ithappens.me story feed."""

__version__ = "0.1.0"
