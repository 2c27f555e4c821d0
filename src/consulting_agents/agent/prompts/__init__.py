"""Prompt templates for the consultation agents."""
