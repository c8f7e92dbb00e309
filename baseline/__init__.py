"""Baseline: run the same verbs across every package of a multi-language workspace.

Plugins decide, for each repository, which language it is, which commands
satisfy "test" / "lint" / "start", and which tool has to run them.
"""

__version__ = "0.4.0"
