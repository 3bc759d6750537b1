"""Portfolio domain engine: reducer, selectors, budget preservation and import diffing."""

__version__ = "0.1.0"
