"""Launcher building blocks: file hashing, resources, pack codes, news, network jobs and platform APIs."""

__version__ = "0.1.0"