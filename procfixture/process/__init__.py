"""
Process-level building blocks used by the supervisor: address and data
directory allocation, binary lookup, argument templating and sessions.
"""
from .addr import AddressManager, PortManager
from .binpath import BinaryPathFinder, DefaultBinaryPathFinder
from .datadir import DataDirManager, TempDirManager
from .session import Command, OutputBuffer, PopenSession, ProcessStarter, Session, start_process
from .templates import flatten_args, merge_args, render_templates

__all__ = [
    "AddressManager", "PortManager",
    "BinaryPathFinder", "DefaultBinaryPathFinder",
    "DataDirManager", "TempDirManager",
    "Command", "OutputBuffer", "PopenSession", "ProcessStarter", "Session", "start_process",
    "flatten_args", "merge_args", "render_templates",
]
