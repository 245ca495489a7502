"""Process primitives."""

from opskills.primitives.subprocess import SubprocessPrimitive, SubprocessResult

__all__ = ["SubprocessPrimitive", "SubprocessResult"]
