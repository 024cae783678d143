"""Shared kernel: configuration, logging, base models and process execution."""
