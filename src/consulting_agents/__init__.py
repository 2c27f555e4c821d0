"""Consulting Agents - two-agent business consulting with web-grounded research."""

__version__ = "1.0.0"
