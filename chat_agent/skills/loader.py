"""Discovery of SKILL.md files and parsing of their YAML frontmatter.

Each skill is a directory holding a ``SKILL.md`` file and optional supporting
files::

    ---
    name: web-research
    description: Structured approach to researching a topic online
    ---

    # Web Research
    ...

Only the frontmatter is read during discovery; the body is loaded on demand.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

LOGGER = logging.getLogger(__name__)

SKILL_FILE = "SKILL.md"
MAX_SKILL_FILE_SIZE = 10 * 1024 * 1024

_FRONTMATTER_PATTERN = re.compile(r"^---\s*\n(.*?)\n---\s*\n(.*)$", re.DOTALL)
_SKILL_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


@dataclass(frozen=True, slots=True)
class SkillMetadata:
    name: str
    description: str
    path: Path
    source: str  # "user" or "project"


def parse_frontmatter(content: str) -> Optional[Tuple[Dict[str, Any], str]]:
    """Split SKILL.md content into (frontmatter, body); None if there is no valid frontmatter."""
    match = _FRONTMATTER_PATTERN.match(content)
    if not match:
        return None

    try:
        metadata = yaml.safe_load(match.group(1))
    except yaml.YAMLError:
        return None

    if not isinstance(metadata, dict):
        return None
    return metadata, match.group(2)


def is_safe_path(target: Path, base: Path) -> bool:
    """True when ``target`` resolves to ``base`` or somewhere inside it."""
    try:
        target.resolve().relative_to(base.resolve())
    except (OSError, ValueError):
        return False
    return True


def parse_skill_metadata(skill_md: Path, source: str) -> Optional[SkillMetadata]:
    try:
        if skill_md.stat().st_size > MAX_SKILL_FILE_SIZE:
            LOGGER.warning("Skipping oversized skill file: %s", skill_md)
            return None
        content = skill_md.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        LOGGER.error("Failed to load skill %s: %s", skill_md, exc)
        return None

    parsed = parse_frontmatter(content)
    if parsed is None:
        LOGGER.warning("Could not parse frontmatter: %s", skill_md)
        return None

    metadata, _ = parsed
    name = metadata.get("name")
    description = metadata.get("description")
    if not name or not description:
        LOGGER.warning("Skill is missing name/description: %s", skill_md)
        return None

    return SkillMetadata(name=str(name), description=str(description), path=skill_md, source=source)


def load_skills_from_dir(skills_dir: Path, source: str) -> List[SkillMetadata]:
    if not skills_dir.is_dir():
        return []

    skills: List[SkillMetadata] = []
    for entry in sorted(skills_dir.iterdir()):
        if not entry.is_dir():
            continue

        skill_md = entry / SKILL_FILE
        if not skill_md.is_file():
            continue

        if not is_safe_path(skill_md, skills_dir):
            LOGGER.warning("Skipping skill outside its directory: %s", skill_md)
            continue

        metadata = parse_skill_metadata(skill_md, source)
        if metadata is not None:
            skills.append(metadata)
    return skills


def list_skills(user_skills_dir: Optional[Path], project_skills_dir: Optional[Path] = None) -> List[SkillMetadata]:
    """Load user skills, then project skills; a project skill replaces a user skill of the same name."""
    found: Dict[str, SkillMetadata] = {}
    if user_skills_dir is not None:
        for skill in load_skills_from_dir(user_skills_dir, "user"):
            found[skill.name] = skill
    if project_skills_dir is not None:
        for skill in load_skills_from_dir(project_skills_dir, "project"):
            found[skill.name] = skill
    return list(found.values())


def read_skill_content(skill_md: Path) -> Optional[str]:
    """Markdown body of a SKILL.md file, without its frontmatter."""
    try:
        content = skill_md.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        LOGGER.error("Failed to read skill content %s: %s", skill_md, exc)
        return None

    parsed = parse_frontmatter(content)
    return parsed[1] if parsed else content


def get_supporting_files(skill_md: Path) -> List[str]:
    skill_dir = skill_md.parent
    if not skill_dir.is_dir():
        return []
    return [str(path) for path in sorted(skill_dir.iterdir()) if path.name != SKILL_FILE]


def validate_skill_name(name: Optional[str]) -> Optional[str]:
    """Return a readable problem with ``name``, or None when it is usable."""
    if not name or not name.strip():
        return "Skill name must not be empty"
    if ".." in name:
        return 'Skill name must not contain ".."'
    if name.startswith(("/", "\\")):
        return "Skill name must not be an absolute path"
    if "/" in name or "\\" in name:
        return "Skill name must not contain path separators"
    if not _SKILL_NAME_PATTERN.match(name):
        return "Skill name may only contain letters, digits, hyphens and underscores"
    return None
