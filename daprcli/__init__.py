"""Tools for running, inspecting and talking to local Dapr sidecars."""

__version__ = "0.1.0"