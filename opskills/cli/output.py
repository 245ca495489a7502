"""Output helpers shared by the CLI verbs.

Everything a verb prints goes through print_result, which knows how to turn
the package's own result types into JSON: ExecutionResult, Skill and the
mcp.types models returned by external servers.
"""

import asyncio
import json
import sys
from typing import Any, Coroutine, Dict, NoReturn


def run_async(coro: Coroutine) -> Any:
    """Run an async coroutine from sync context."""
    return asyncio.run(coro)


def to_jsonable(value: Any) -> Any:
    """Convert results (and lists of them) into JSON-ready structures."""
    from pydantic import BaseModel

    from opskills.skill.loader import skill_summary
    from opskills.skill.types import ExecutionResult, Skill

    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    if isinstance(value, ExecutionResult):
        return value.to_dict()
    if isinstance(value, Skill):
        return skill_summary(value)
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    return value


def print_result(result: Any, compact: bool = False) -> None:
    """Print a result as JSON to stdout."""
    indent = None if compact else 2
    print(json.dumps(to_jsonable(result), indent=indent, default=str))


def die(msg: str, code: int = 1) -> NoReturn:
    """Print error to stderr and exit."""
    print(f"error: {msg}", file=sys.stderr)
    sys.exit(code)


def parse_params(raw: str) -> Dict[str, Any]:
    """Parse the --params JSON object, exiting on anything else."""
    try:
        params = json.loads(raw)
    except json.JSONDecodeError as e:
        die(f"invalid JSON in --params: {e}")
    if not isinstance(params, dict):
        die("--params must be a JSON object")
    return params
