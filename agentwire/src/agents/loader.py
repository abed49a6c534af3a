# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Agent definition documents.

A definition is a markdown file that starts with a YAML frontmatter block
(``name``, ``description``, ``capabilities``) followed by the free-text
persona used verbatim as the system prompt::

    ---
    name: researcher
    description: Finds things out
    capabilities: [http_get, read_file]
    ---
    You are a careful researcher...
"""
import yaml
import logging

from pathlib import Path
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError
from ..types.agent_types import AgentDefinition

logger = logging.getLogger(__name__)

FRONTMATTER_DELIMITER = "---"


def split_frontmatter(text: str) -> tuple[dict, str]:
    """Return (metadata, body). Documents without frontmatter have no metadata."""
    lines = text.splitlines()
    if not lines or lines[0].strip() != FRONTMATTER_DELIMITER:
        return {}, text.strip()

    for end, line in enumerate(lines[1:], start=1):
        if line.strip() == FRONTMATTER_DELIMITER:
            break
    else:
        raise ValueError("unterminated frontmatter block")

    metadata = yaml.safe_load("\n".join(lines[1:end])) or {}
    if not isinstance(metadata, dict):
        raise ValueError("frontmatter must be a mapping")
    body = "\n".join(lines[end + 1 :]).strip()
    return metadata, body


def parse_definition(text: str, path: Path | None = None) -> AgentDefinition:
    source = str(path) if path else "<string>"
    try:
        metadata, body = split_frontmatter(text)
    except (ValueError, yaml.YAMLError) as e:
        raise ValidationError(source, f"invalid frontmatter: {e}")

    if "name" not in metadata:
        if path is None:
            raise ValidationError(source, "missing required key 'name'")
        metadata["name"] = path.stem

    try:
        return AgentDefinition(
            name=str(metadata["name"]),
            description=metadata.get("description") or "",
            capabilities=metadata.get("capabilities"),
            body=body,
            path=path,
        )
    except PydanticValidationError as e:
        raise ValidationError(source, str(e))


def load_definition(path: Path | str) -> AgentDefinition:
    path = Path(path)
    return parse_definition(path.read_text(), path=path)


def load_directory(directory: Path | str) -> list[AgentDefinition]:
    """Every ``*.md`` definition in a directory, sorted by file name."""
    definitions = []
    for path in sorted(Path(directory).glob("*.md")):
        definitions.append(load_definition(path))
    logger.info(f"Loaded {len(definitions)} agent definitions from {directory}")
    return definitions


def dump_definition(definition: AgentDefinition) -> str:
    metadata = {
        "name": definition.name,
        "description": definition.description,
        "capabilities": list(definition.capabilities),
    }
    frontmatter = yaml.safe_dump(metadata, sort_keys=False, allow_unicode=True).strip()
    return f"{FRONTMATTER_DELIMITER}\n{frontmatter}\n{FRONTMATTER_DELIMITER}\n\n{definition.body.strip()}\n"


def save_definition(definition: AgentDefinition, path: Path | str | None = None) -> Path:
    target = Path(path or definition.path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(dump_definition(definition))
    return target
