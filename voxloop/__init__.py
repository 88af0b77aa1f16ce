"""
voxloop

Single-shot voice assistant loop: record, transcribe, generate, speak.
"""

__version__ = "0.1.0"
