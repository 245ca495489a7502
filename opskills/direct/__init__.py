"""Direct (in-process) skill execution."""

from opskills.direct.executor import DirectExecutor, stringify_param

__all__ = ["DirectExecutor", "stringify_param"]
