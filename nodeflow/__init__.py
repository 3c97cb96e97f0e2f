"""
NodeFlow - An async execution engine for visual node graphs.

Runs graphs of typed nodes connected through sockets: variables,
conditionals, AI calls, delays, loggers and more, with a full trace of
every run.
"""

__version__ = "1.0.0"
