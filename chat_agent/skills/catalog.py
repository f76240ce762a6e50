"""Skill catalog with progressive disclosure.

Names and descriptions are injected into the system prompt up front; the full
instructions are only read when the model asks for them. The discovered list
is cached until ``invalidate()`` or ``reload()`` is called.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from chat_agent.skills.loader import (
    SKILL_FILE,
    SkillMetadata,
    get_supporting_files,
    list_skills,
    read_skill_content,
    validate_skill_name,
)

LOGGER = logging.getLogger(__name__)

SKILLS_SYSTEM_PROMPT = """
## Skills

You have access to a library of skills that provide specialised workflows and domain knowledge.

{skills_locations}

**Available skills:**

{skills_list}

**How to use skills (progressive disclosure):**

You know which skills exist (name and description above) but only read their full instructions when needed:

1. **Spot a matching skill**: check whether the user's task matches a skill description
2. **Read the instructions**: call the readSkill tool to load the full SKILL.md content
3. **Follow the instructions**: SKILL.md contains step-by-step workflows, best practices and examples
4. **Use supporting files**: a skill may ship scripts, configuration or reference documents

**When to use skills:**
- The request falls inside a skill's domain (e.g. "research X" -> web-research)
- The task needs specialised knowledge or a structured workflow
- A skill offers a proven pattern for a complex task

Example: for "Can you research recent developments in quantum computing?", notice the
"web-research" skill, call readSkill with name "web-research", then follow its workflow.
"""

SKILL_TEMPLATE = """---
name: {name}
description: {description}
---

# {title}

## Description

{description}

## When to use

- [Scenario 1: when the user asks to...]
- [Scenario 2: when you need to...]

## Steps

### Step 1: [first step]
[What to do first]

### Step 2: [second step]
[What to do next]

## Best practices

- [Practice 1]
- [Practice 2]
{custom}"""


class SkillError(ValueError):
    """Raised when a skill cannot be created."""


class SkillCatalog:
    """Cached view over the user and project skill directories."""

    def __init__(self, user_skills_dir: Path, project_skills_dir: Optional[Path] = None) -> None:
        self.user_skills_dir = Path(user_skills_dir)
        self.project_skills_dir = Path(project_skills_dir) if project_skills_dir else None
        self._skills: Optional[List[SkillMetadata]] = None

    def reload(self) -> List[SkillMetadata]:
        self._skills = list_skills(self.user_skills_dir, self.project_skills_dir)
        LOGGER.info("Loaded %d skill(s)", len(self._skills))
        return list(self._skills)

    def invalidate(self) -> None:
        """Drop the cached list; the next access rescans the directories."""
        self._skills = None

    def list_skills(self) -> List[SkillMetadata]:
        if self._skills is None:
            self.reload()
        return list(self._skills)

    def names(self) -> List[str]:
        return [skill.name for skill in self.list_skills()]

    def get(self, name: str) -> Optional[SkillMetadata]:
        return next((skill for skill in self.list_skills() if skill.name == name), None)

    def read_content(self, skill: SkillMetadata) -> Optional[str]:
        return read_skill_content(skill.path)

    def supporting_files(self, skill: SkillMetadata) -> List[str]:
        return get_supporting_files(skill.path)

    def create(
        self,
        name: str,
        description: str,
        content: Optional[str] = None,
        project_level: bool = False,
    ) -> Path:
        """Write a new SKILL.md from the template and refresh the cache."""
        problem = validate_skill_name(name)
        if problem:
            raise SkillError(problem)

        target_dir = self.user_skills_dir
        if project_level and self.project_skills_dir is not None:
            target_dir = self.project_skills_dir

        skill_dir = target_dir / name
        if skill_dir.exists():
            raise SkillError(f'Skill "{name}" already exists at {skill_dir}')

        skill_dir.mkdir(parents=True)
        skill_md = skill_dir / SKILL_FILE
        skill_md.write_text(
            SKILL_TEMPLATE.format(
                name=name,
                description=description,
                title=" ".join(part.capitalize() for part in name.split("-")),
                custom=f"\n## Custom instructions\n\n{content}\n" if content else "",
            ),
            encoding="utf-8",
        )
        self.reload()
        return skill_md

    def system_prompt(self) -> str:
        return SKILLS_SYSTEM_PROMPT.format(
            skills_locations=self._format_locations(),
            skills_list=self._format_skills(),
        )

    def _format_locations(self) -> str:
        locations = [f"**User skills**: `{self.user_skills_dir}`"]
        if self.project_skills_dir is not None:
            locations.append(f"**Project skills**: `{self.project_skills_dir}` (override user skills)")
        return "\n".join(locations)

    def _format_skills(self) -> str:
        skills = self.list_skills()
        if not skills:
            directories = [str(self.user_skills_dir)]
            if self.project_skills_dir is not None:
                directories.append(str(self.project_skills_dir))
            return f"(No skills available yet. Skills can be created in {' or '.join(directories)})"

        lines: List[str] = []
        for source, heading in (("user", "**User skills:**"), ("project", "**Project skills:**")):
            group = [skill for skill in skills if skill.source == source]
            if not group:
                continue
            lines.append(heading)
            for skill in group:
                lines.append(f"- **{skill.name}**: {skill.description}")
                lines.append(f'  -> readSkill with name "{skill.name}" for full instructions')
            lines.append("")
        return "\n".join(lines).rstrip()
