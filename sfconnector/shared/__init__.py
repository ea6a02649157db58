"""Shared utilities: CLI processes, result contracts, logging, settings and files."""
