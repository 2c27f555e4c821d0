"""Core configuration, exceptions, logging and tracing."""
