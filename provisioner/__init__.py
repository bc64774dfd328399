"""Comfy provisioner — prepare a GPU node and start the generation service."""

__version__ = "0.1.0"
