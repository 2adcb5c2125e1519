"""Prompt routing and streaming chat gateway for hosted language models."""

__version__ = "0.1.0"
