"""Unit tests for the gateway.

Isolated tests for individual components, each in its own temp directory.
"""
