"""Agent catalog - loads agent definitions from markdown files.

Agent format::

    ---
    name: agent-name
    description: What the agent is for
    model: optional-model-override
    ---

    # System Prompt
    ...

When the same name is defined in several directories, the directory listed
first wins (project-level directories are passed before user-level ones).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

from ..errors import AgentNotFoundError, InvalidConfigError

logger = logging.getLogger(__name__)

_FRONTMATTER_RE = re.compile(r"^---[\t ]*[\r\n]+([\s\S]*?)[\r\n]+---[\t ]*[\r\n]+([\s\S]*)$")
# Some files skip the closing --- and start the body with a heading.
_FRONTMATTER_FALLBACK_RE = re.compile(r"^---[\t ]*[\r\n]+([\s\S]*?)[\r\n]{2,}(#[\s\S]*)$")
_NAME_RE = re.compile(r"^name:[ \t]*(.+?)[ \t]*$", re.MULTILINE)
_DESCRIPTION_RE = re.compile(
    r"^description:\s*([\s\S]*?)(?=^(?:name|model|tools|color|Examples):|\Z)",
    re.MULTILINE,
)
_MODEL_RE = re.compile(r"^model:[ \t]*(.+?)[ \t]*$", re.MULTILINE)


@dataclass
class AgentDefinition:
    """A named agent with its system prompt."""

    name: str
    description: str
    system_prompt: str
    model: Optional[str] = None
    source: Optional[str] = None


def parse_agent_file(content: str, filename: str = "<string>") -> AgentDefinition:
    """Parse a markdown agent definition.

    Fields are extracted with lenient regexes rather than strict YAML so that
    descriptions carrying ``Examples:`` blocks or escaped newlines still load.

    Raises:
        InvalidConfigError: If frontmatter, ``name`` or ``description`` is missing
    """
    match = _FRONTMATTER_RE.match(content)
    if match is None:
        match = _FRONTMATTER_FALLBACK_RE.match(content)
        if match is not None:
            logger.warning("%s: no closing ---, using fallback parser", filename)

    if match is None:
        raise InvalidConfigError(
            f"Invalid agent file: {filename} - Missing frontmatter (expected --- delimiters)",
            details={"filename": filename},
        )

    frontmatter, body = match.group(1), match.group(2)

    name_match = _NAME_RE.search(frontmatter)
    if name_match is None:
        raise InvalidConfigError(
            f"Missing 'name' field in {filename}",
            details={"filename": filename},
        )

    desc_match = _DESCRIPTION_RE.search(frontmatter)
    if desc_match is None or not desc_match.group(1).strip():
        raise InvalidConfigError(
            f"Missing 'description' field in {filename}",
            details={"filename": filename},
        )

    description = desc_match.group(1).replace("\\n", "\n").strip()
    examples_idx = description.find("\nExamples:")
    if examples_idx != -1:
        description = description[:examples_idx].strip()

    model_match = _MODEL_RE.search(frontmatter)

    return AgentDefinition(
        name=name_match.group(1).strip(),
        description=description,
        system_prompt=body.strip(),
        model=model_match.group(1).strip() if model_match else None,
        source=filename,
    )


class AgentCatalog:
    """Central catalog of agent definitions.

    Example:
        catalog = AgentCatalog()
        catalog.load([project_dir, user_dir])

        definition = catalog.require("code-reviewer")
    """

    def __init__(self, definitions: Iterable[AgentDefinition] = ()):
        self._agents: Dict[str, AgentDefinition] = {}
        self._dirs: List[Path] = []
        self._loaded = False
        for definition in definitions:
            self.register(definition)

    def load(self, dirs: Sequence[Union[str, Path]]) -> None:
        """Replace the catalog with the agents found in ``dirs``.

        Args:
            dirs: Directories in precedence order (first wins)
        """
        self._agents.clear()
        self._dirs = [Path(d).expanduser() for d in dirs]

        for directory in reversed(self._dirs):
            self._load_dir(directory)

        self._loaded = True
        logger.info("Loaded %d agents: %s", len(self._agents), ", ".join(self.names()) or "none")

    def reload(self) -> None:
        if self._dirs:
            self.load(self._dirs)

    def _load_dir(self, directory: Path) -> None:
        if not directory.is_dir():
            logger.debug("Agent directory %s does not exist, skipping", directory)
            return

        for path in sorted(directory.iterdir()):
            if path.suffix.lower() != ".md" or not path.is_file():
                continue
            try:
                definition = parse_agent_file(path.read_text(encoding="utf-8"), path.name)
            except (InvalidConfigError, OSError, UnicodeDecodeError) as e:
                logger.error("Failed to load %s: %s", path.name, e)
                continue
            definition.source = str(path)
            self._agents[definition.name] = definition

    def register(self, definition: AgentDefinition) -> None:
        self._agents[definition.name] = definition

    def get(self, name: str) -> Optional[AgentDefinition]:
        return self._agents.get(name)

    def require(self, name: str) -> AgentDefinition:
        """Get an agent definition, raising ``AgentNotFoundError`` if absent."""
        definition = self._agents.get(name)
        if definition is None:
            raise AgentNotFoundError(name, self.names())
        return definition

    def has(self, name: str) -> bool:
        return name in self._agents

    def list(self) -> List[AgentDefinition]:
        return list(self._agents.values())

    def names(self) -> List[str]:
        return list(self._agents.keys())

    @property
    def dirs(self) -> List[Path]:
        return list(self._dirs)

    @property
    def size(self) -> int:
        return len(self._agents)

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def __len__(self) -> int:
        return len(self._agents)

    def __contains__(self, name: str) -> bool:
        return name in self._agents

    def __repr__(self) -> str:
        return f"AgentCatalog(agents={self.names()})"
