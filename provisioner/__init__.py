"""Autonomous Database provisioner."""

__version__ = "2.0.1"
