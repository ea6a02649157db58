"""Salesforce CLI processes."""

from sfconnector.shared.process.commands import CommandFactory
from sfconnector.shared.process.runner import Process, ProcessResponse, ProcessRunner, parse_output

__all__ = ["CommandFactory", "Process", "ProcessResponse", "ProcessRunner", "parse_output"]
