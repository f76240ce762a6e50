"""Tools that let the model browse, read and create skills."""
from __future__ import annotations

import logging
from typing import Any, Dict

from chat_agent.core.schema import BooleanSchema, ObjectSchema, StringSchema
from chat_agent.core.tools import SkillTool, ToolRegistry, failure
from chat_agent.skills.catalog import SkillCatalog, SkillError

LOGGER = logging.getLogger(__name__)


class ListSkillsTool(SkillTool):
    def __init__(self, catalog: SkillCatalog) -> None:
        super().__init__("listSkills", "List every available skill", ObjectSchema())
        self._catalog = catalog

    async def run(self, args: Dict[str, Any]) -> Any:
        skills = self._catalog.list_skills()
        return {
            "skills": [
                {"name": skill.name, "description": skill.description, "source": skill.source}
                for skill in skills
            ],
            "total": len(skills),
        }


class ReadSkillTool(SkillTool):
    def __init__(self, catalog: SkillCatalog) -> None:
        super().__init__(
            "readSkill",
            'Read the full instructions of a skill. Example: readSkill({"name": "web-research"})',
            ObjectSchema(
                properties={"name": StringSchema('Skill name, e.g. "web-research"')},
            ),
        )
        self._catalog = catalog

    async def run(self, args: Dict[str, Any]) -> Any:
        available = self._catalog.names()
        listing = "\n".join(f"  - {name}" for name in available)
        name = (args.get("name") or "").strip()

        if not name:
            return failure(
                'Please provide a skill name, e.g. readSkill({"name": "web-research"}).\n\n'
                f"Available skills:\n{listing}",
                availableSkills=available,
            )

        skill = self._catalog.get(name)
        if skill is None:
            LOGGER.info("readSkill: unknown skill %s", name)
            return failure(
                f'Skill not found: "{name}"\n\nAvailable skills:\n{listing}',
                availableSkills=available,
            )

        content = self._catalog.read_content(skill)
        return {
            "success": True,
            "name": skill.name,
            "description": skill.description,
            "content": content if content is not None else "Skill content could not be read",
            "supportingFiles": self._catalog.supporting_files(skill),
            "skillDir": str(skill.path.parent),
        }


class CreateSkillTool(SkillTool):
    def __init__(self, catalog: SkillCatalog) -> None:
        super().__init__(
            "createSkill",
            "Create a new skill",
            ObjectSchema(
                properties={
                    "name": StringSchema("Skill name (letters, digits, hyphens and underscores only)"),
                    "description": StringSchema("What the skill is for"),
                    "content": StringSchema("Skill instructions"),
                    "projectLevel": BooleanSchema("Create as a project-level skill"),
                },
                required=("name", "description"),
            ),
        )
        self._catalog = catalog

    async def run(self, args: Dict[str, Any]) -> Any:
        try:
            skill_md = self._catalog.create(
                args["name"],
                args["description"],
                content=args.get("content"),
                project_level=bool(args.get("projectLevel")),
            )
        except SkillError as exc:
            return failure(str(exc))

        return {
            "success": True,
            "message": f'Skill "{args["name"]}" created',
            "path": str(skill_md),
            "skillDir": str(skill_md.parent),
        }


def skill_tools(catalog: SkillCatalog) -> ToolRegistry:
    return ToolRegistry([ListSkillsTool(catalog), ReadSkillTool(catalog), CreateSkillTool(catalog)])
