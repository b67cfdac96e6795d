"""
The Supervisor package.
Manages the lifecycle of one external server process used as a test fixture.

This package contains the central ProcessSupervisor class and its helper
modules, which together handle defaulting, spawning, readiness detection
and teardown.
"""
from .state import DefaultedInput, ProcessState
from .supervisor import ProcessSupervisor

__all__ = ['DefaultedInput', 'ProcessState', 'ProcessSupervisor']
