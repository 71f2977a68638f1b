"""
The Supervisor package.
Manages the lifecycle of the supervised child processes.

This package contains the central Supervisor class and its helper modules,
which together handle spawning, polling, restarting and the coordinated
shutdown of every process declared in the manifest.
"""
from .handle import ProcessHandle
from .supervisor import Supervisor
from .process_utils import PollResult, ProcessState

__all__ = ['Supervisor', 'ProcessHandle', 'PollResult', 'ProcessState']
