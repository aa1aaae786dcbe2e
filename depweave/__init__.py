"""depweave: circular dependency detection, lazy module loading and task gating."""

__version__ = "0.1.0"
