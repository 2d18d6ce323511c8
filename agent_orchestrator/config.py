"""Configuration loading and validation."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .agents.delegation import DelegationConfig
from .errors import InvalidConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/config.yaml"
ENV_PREFIX = "AGENT_ORCHESTRATOR_"
ENGINES = ("stub", "claude")
PERMISSION_MODES = ("default", "acceptEdits", "plan", "bypassPermissions")


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass
class ConfigIssue:
    """A single configuration issue."""
    field: str
    message: str
    severity: Severity


@dataclass
class BatchConfig:
    max_tasks: int = 10


@dataclass
class ClaudeConfig:
    permission_mode: str = "acceptEdits"
    model: Optional[str] = None
    cwd: Optional[str] = None


@dataclass
class LoggingConfig:
    verbose: bool = False
    max_events: int = 1000


@dataclass
class OrchestratorConfig:
    """Top-level configuration.

    ``agents_dirs`` lists directories in precedence order; when empty the
    project directory ``<cwd>/.claude/agents`` is searched before the user
    directory ``~/.claude/agents``.
    """

    engine: str = "stub"
    agents_dirs: List[str] = field(default_factory=list)
    delegation: DelegationConfig = field(default_factory=DelegationConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    claude: ClaudeConfig = field(default_factory=ClaudeConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> OrchestratorConfig:
        delegation = raw.get("delegation") or {}
        batch = raw.get("batch") or {}
        claude = raw.get("claude") or {}
        log = raw.get("logging") or {}
        return cls(
            engine=str(raw.get("engine", "stub")),
            agents_dirs=[str(d) for d in raw.get("agents_dirs") or []],
            delegation=DelegationConfig(
                max_depth=delegation.get("max_depth", 5),
                strict_parent_lookup=bool(delegation.get("strict_parent_lookup", False)),
            ),
            batch=BatchConfig(max_tasks=batch.get("max_tasks", 10)),
            claude=ClaudeConfig(
                permission_mode=claude.get("permission_mode", "acceptEdits"),
                model=claude.get("model"),
                cwd=claude.get("cwd"),
            ),
            logging=LoggingConfig(
                verbose=bool(log.get("verbose", False)),
                max_events=log.get("max_events", 1000),
            ),
        )

    def resolved_agents_dirs(self, cwd: Optional[str] = None) -> List[Path]:
        if self.agents_dirs:
            return [Path(d).expanduser() for d in self.agents_dirs]
        base = Path(cwd or self.claude.cwd or os.getcwd())
        return [base / ".claude" / "agents", Path.home() / ".claude" / "agents"]


def validate_config(raw_config: Dict[str, Any]) -> List[ConfigIssue]:
    """Validate raw configuration and return a list of issues.

    Args:
        raw_config: Raw config dict from YAML (after env overrides)

    Returns:
        List of ConfigIssue (empty = valid)
    """
    issues: List[ConfigIssue] = []

    # --- Engine ---
    engine = raw_config.get("engine", "stub")
    if engine not in ENGINES:
        issues.append(ConfigIssue(
            field="engine",
            message=f"engine must be one of {', '.join(ENGINES)}, got {engine!r}",
            severity=Severity.ERROR,
        ))

    # --- Delegation ---
    delegation = raw_config.get("delegation") or {}
    if not isinstance(delegation, dict):
        issues.append(ConfigIssue(
            field="delegation",
            message="delegation must be a mapping",
            severity=Severity.ERROR,
        ))
        delegation = {}
    max_depth = delegation.get("max_depth", 5)
    if not _is_positive_int(max_depth):
        issues.append(ConfigIssue(
            field="delegation.max_depth",
            message=f"delegation.max_depth must be a positive integer, got {max_depth!r}",
            severity=Severity.ERROR,
        ))

    # --- Batch ---
    batch = raw_config.get("batch") or {}
    if not isinstance(batch, dict):
        issues.append(ConfigIssue(
            field="batch",
            message="batch must be a mapping",
            severity=Severity.ERROR,
        ))
        batch = {}
    max_tasks = batch.get("max_tasks", 10)
    if not _is_positive_int(max_tasks):
        issues.append(ConfigIssue(
            field="batch.max_tasks",
            message=f"batch.max_tasks must be a positive integer, got {max_tasks!r}",
            severity=Severity.ERROR,
        ))

    # --- Claude ---
    claude = raw_config.get("claude") or {}
    permission_mode = claude.get("permission_mode", "acceptEdits") if isinstance(claude, dict) else None
    if permission_mode not in PERMISSION_MODES:
        issues.append(ConfigIssue(
            field="claude.permission_mode",
            message=f"claude.permission_mode must be one of {', '.join(PERMISSION_MODES)}, got {permission_mode!r}",
            severity=Severity.ERROR,
        ))

    # --- Logging ---
    log = raw_config.get("logging") or {}
    if not isinstance(log, dict):
        issues.append(ConfigIssue(
            field="logging",
            message="logging must be a mapping",
            severity=Severity.ERROR,
        ))
        log = {}
    max_events = log.get("max_events", 1000)
    if not _is_positive_int(max_events):
        issues.append(ConfigIssue(
            field="logging.max_events",
            message=f"logging.max_events must be a positive integer, got {max_events!r}",
            severity=Severity.ERROR,
        ))

    # --- Agent directories ---
    dirs = raw_config.get("agents_dirs") or []
    if not isinstance(dirs, list):
        issues.append(ConfigIssue(
            field="agents_dirs",
            message="agents_dirs must be a list of paths",
            severity=Severity.ERROR,
        ))
    else:
        for d in dirs:
            if not Path(str(d)).expanduser().is_dir():
                issues.append(ConfigIssue(
                    field="agents_dirs",
                    message=f"Agent directory does not exist: {d}",
                    severity=Severity.WARNING,
                ))

    return issues


def has_errors(issues: List[ConfigIssue]) -> bool:
    """Check if any issues are errors (not just warnings)."""
    return any(i.severity == Severity.ERROR for i in issues)


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay ``AGENT_ORCHESTRATOR_*`` environment variables onto raw config."""
    data = dict(raw)
    env = os.environ

    if env.get(f"{ENV_PREFIX}ENGINE"):
        data["engine"] = env[f"{ENV_PREFIX}ENGINE"]
    if env.get(f"{ENV_PREFIX}AGENTS_DIRS"):
        data["agents_dirs"] = [d for d in env[f"{ENV_PREFIX}AGENTS_DIRS"].split(os.pathsep) if d]

    delegation = dict(data.get("delegation") or {})
    if env.get(f"{ENV_PREFIX}MAX_DEPTH"):
        delegation["max_depth"] = _parse_int(env[f"{ENV_PREFIX}MAX_DEPTH"])
    if env.get(f"{ENV_PREFIX}STRICT_PARENT_LOOKUP"):
        delegation["strict_parent_lookup"] = _env_bool(env[f"{ENV_PREFIX}STRICT_PARENT_LOOKUP"])
    if delegation:
        data["delegation"] = delegation

    if env.get(f"{ENV_PREFIX}MAX_TASKS"):
        data["batch"] = {**(data.get("batch") or {}), "max_tasks": _parse_int(env[f"{ENV_PREFIX}MAX_TASKS"])}

    claude = dict(data.get("claude") or {})
    if env.get(f"{ENV_PREFIX}PERMISSION_MODE"):
        claude["permission_mode"] = env[f"{ENV_PREFIX}PERMISSION_MODE"]
    if env.get(f"{ENV_PREFIX}MODEL"):
        claude["model"] = env[f"{ENV_PREFIX}MODEL"]
    if claude:
        data["claude"] = claude

    if env.get(f"{ENV_PREFIX}VERBOSE"):
        data["logging"] = {**(data.get("logging") or {}), "verbose": _env_bool(env[f"{ENV_PREFIX}VERBOSE"])}

    return data


def _parse_int(value: str) -> Any:
    # Leave unparseable values in place so validation reports them.
    try:
        return int(value)
    except ValueError:
        return value


def load_config(config_path: Optional[str] = None) -> OrchestratorConfig:
    """Load configuration from YAML, then apply environment overrides.

    A missing file at the default location means "use defaults"; a missing
    file that was asked for explicitly is an error.

    Raises:
        InvalidConfigError: If the file is unreadable or validation finds errors
    """
    explicit = config_path or os.environ.get(f"{ENV_PREFIX}CONFIG")
    path = Path(explicit or DEFAULT_CONFIG_PATH)

    raw: Dict[str, Any] = {}
    if path.exists():
        try:
            with open(path) as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise InvalidConfigError(f"Invalid YAML in {path}: {e}", details={"path": str(path)}) from e
        if not isinstance(raw, dict):
            raise InvalidConfigError(f"Config file {path} must contain a mapping", details={"path": str(path)})
    elif explicit:
        raise InvalidConfigError(f"Config file not found: {path}", details={"path": str(path)})

    raw = apply_env_overrides(raw)
    issues = validate_config(raw)
    for issue in issues:
        if issue.severity == Severity.WARNING:
            logger.warning("Config %s: %s", issue.field, issue.message)

    if has_errors(issues):
        errors = [i for i in issues if i.severity == Severity.ERROR]
        raise InvalidConfigError(
            "Invalid configuration: " + "; ".join(f"{i.field}: {i.message}" for i in errors),
            details={"issues": [{"field": i.field, "message": i.message} for i in errors]},
        )

    return OrchestratorConfig.from_dict(raw)
