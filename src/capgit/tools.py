# capgit: Closed tool set with a reflective registry. Each tool is keyed by a ToolName member, advertises a JSON
# schema derived from its handler's type hints, and always answers the model with text.

import inspect
import json
from enum import Enum
from typing import Any, Callable, Dict, List, NamedTuple, Optional, get_args, get_origin, get_type_hints

from .context import Context
from .errors import GitError, NothingToCommitError
from .git import GitRepository, GitStatus
from .models import ToolCall


class ToolName(str, Enum):
    RESTART_SESSION = "RestartSession"
    GIT_STATUS = "GitStatus"
    GIT_STAGE = "GitStage"
    GIT_UNSTAGE = "GitUnstage"
    GIT_COMMIT = "GitCommit"


class Toolbox(NamedTuple):
    """Collaborators handed to every tool handler."""
    ctx: Context
    repo: GitRepository


class ToolResult(NamedTuple):
    content: str
    restart_session: bool = False


# -----------------------------
# Reflection utilities and registry
# -----------------------------

_REGISTRY: Dict[ToolName, Dict[str, Any]] = {}

_type_map = {
    str: {"type": "string"},
    int: {"type": "integer"},
    bool: {"type": "boolean"},
    float: {"type": "number"},
}


def _json_schema_for_annotation(ann: Any) -> Dict[str, Any]:
    """Map a Python annotation to a simple JSON Schema snippet."""
    origin = get_origin(ann)
    args = get_args(ann)
    if origin is list:
        item = _json_schema_for_annotation(args[0]) if args else {"type": "string"}
        return {"type": "array", "items": item}
    return dict(_type_map.get(ann, {"type": "string"}))


def _handler_params(fn: Callable) -> List[inspect.Parameter]:
    # Skip first arg (toolbox)
    return list(inspect.signature(fn).parameters.values())[1:]


def _build_parameters_schema(fn: Callable, descriptions: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    hints = get_type_hints(fn)
    props: Dict[str, Any] = {}
    required: List[str] = []
    for p in _handler_params(fn):
        schema = _json_schema_for_annotation(hints.get(p.name, str))
        desc = (descriptions or {}).get(p.name)
        if desc:
            # Array parameters describe their items, matching how the model sees a single file pattern.
            target = schema["items"] if schema.get("type") == "array" else schema
            target["description"] = desc
        props[p.name] = schema
        if p.default is inspect.Parameter.empty:
            required.append(p.name)
    return {"type": "object", "properties": props, "required": required}


def tool(name: ToolName, description: str, *, param_descriptions: Optional[Dict[str, str]] = None):
    """Decorator registering a handler as the implementation of tool `name`."""
    def _wrap(fn: Callable):
        _REGISTRY[name] = {
            "fn": fn,
            "name": name,
            "description": description,
            "schema": _build_parameters_schema(fn, param_descriptions),
        }
        return fn
    return _wrap


def tool_definitions() -> List[Dict[str, Any]]:
    """Return Chat Completions tool specs for every registered tool, in ToolName order."""
    specs: List[Dict[str, Any]] = []
    for name in ToolName:
        meta = _REGISTRY[name]
        specs.append({
            "type": "function",
            "function": {
                "name": name.value,
                "description": meta["description"],
                "parameters": meta["schema"],
            },
        })
    return specs


def _coerce_value(val: Any, ann: Any) -> Any:
    """Bring a decoded JSON value in line with the handler annotation, raising ValueError when impossible."""
    if get_origin(ann) is list:
        # A lone string is accepted as a one-element list.
        if isinstance(val, str):
            return [val]
        if not isinstance(val, list):
            raise ValueError("expected an array")
        return [str(v) for v in val]
    if ann is str:
        if isinstance(val, (dict, list)) or val is None:
            raise ValueError("expected a string")
        return str(val)
    return val


def lookup(name: str) -> Optional[ToolName]:
    """Resolve a wire name to its ToolName, or None when the model asked for something unknown."""
    try:
        return ToolName(name)
    except ValueError:
        return None


def dispatch(toolbox: Toolbox, call: ToolCall) -> ToolResult:
    """
    Execute one tool call and return the text the model should see.

    Unknown tools, malformed arguments and git failures come back as text so the
    conversation can continue; other exceptions propagate.
    """
    name = lookup(call.name)
    if name is None:
        return ToolResult(f"{call.name} could not be found.")
    meta = _REGISTRY[name]
    fn: Callable = meta["fn"]
    try:
        args = call.parse_arguments()
    except ValueError as e:
        return ToolResult(f"Invalid arguments for {name.value}: {e}")

    hints = get_type_hints(fn)
    kwargs: Dict[str, Any] = {}
    for p in _handler_params(fn):
        if p.name not in args:
            if p.default is inspect.Parameter.empty:
                return ToolResult(f"{name.value} is missing required parameter: {p.name}")
            continue
        try:
            kwargs[p.name] = _coerce_value(args[p.name], hints.get(p.name, str))
        except ValueError as e:
            return ToolResult(f"Invalid arguments for {name.value}: {p.name}: {e}")

    toolbox.ctx.log(f"Running tool {name.value} ({call.id})")
    try:
        raw = fn(toolbox, **kwargs)
    except NothingToCommitError:
        return ToolResult("Nothing is staged, so no commit was created. Stage files before committing.")
    except GitError as e:
        return ToolResult(f"{name.value} failed: {e}")
    if isinstance(raw, ToolResult):
        return raw
    return ToolResult(str(raw))


# -----------------------------
# Tool handlers
# -----------------------------


def _section(title: str, paths: List[str], bullet: str) -> List[str]:
    return [title] + [f"{bullet}{p}" for p in paths]


def _format_staged(status: GitStatus) -> str:
    return "\n".join(_section("Staged files:", status.staged, "- ")) + "\n"


@tool(ToolName.RESTART_SESSION, "Restarts the chat session.")
def restart_session(toolbox: Toolbox) -> ToolResult:
    return ToolResult("The session was restarted.", restart_session=True)


@tool(ToolName.GIT_STATUS, "Get the current status of git in the current directory.")
def git_status(toolbox: Toolbox) -> str:
    status = toolbox.repo.status()
    lines = [f"Current branch: {status.branch}"]
    for title, paths in (
        ("Staged for commit:", status.staged),
        ("Modified:", status.modified),
        ("Deleted:", status.missing),
        ("Untracked:", status.untracked),
    ):
        if paths:
            lines.extend(_section(title, paths, " - "))
    return "\n".join(lines) + "\n"


@tool(
    ToolName.GIT_STAGE,
    "Stages files for commit.",
    param_descriptions={"files": "Name of file to stage. This can use a glob syntax."},
)
def git_stage(toolbox: Toolbox, files: List[str]) -> str:
    return _format_staged(toolbox.repo.stage(files))


@tool(
    ToolName.GIT_UNSTAGE,
    "Unstages files.",
    param_descriptions={"files": "Name of file to unstage. This can use a glob syntax."},
)
def git_unstage(toolbox: Toolbox, files: List[str]) -> str:
    return _format_staged(toolbox.repo.unstage(files))


@tool(
    ToolName.GIT_COMMIT,
    "Commits staged changes with the specified commit message.",
    param_descriptions={"commitMessage": "The commit message to use."},
)
def git_commit(toolbox: Toolbox, commitMessage: str) -> str:
    commit = toolbox.repo.commit(commitMessage)
    return f"Commit {commit.sha} created for author {commit.author}."
