"""Neuralearn - topic knowledge graph with semantic question routing."""

__version__ = "0.1.0"
