"""
Orchestrator Package

Runs one voice session: record, transcribe, generate, speak.
"""

from .reporter import ConsoleReporter
from .session import SessionOutcome, VoiceSession

__all__ = ['ConsoleReporter', 'SessionOutcome', 'VoiceSession']
