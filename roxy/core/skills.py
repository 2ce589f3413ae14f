"""
Skill discovery: each skill is a directory holding a SKILL.md file.
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional


SKILL_FILENAME = "SKILL.md"
FRONTMATTER_RE = re.compile(r"\A---\n.*?\n---\n", re.S)


class SkillsLoader:
    def __init__(self, workspace: Path, builtin_dir: Optional[Path] = None):
        self.dirs = [d for d in (builtin_dir, workspace / "skills") if d is not None]

    def get_skill(self, name: str) -> Optional[str]:
        # workspace skills shadow builtin ones
        for base in reversed(self.dirs):
            path = base / name / SKILL_FILENAME
            if path.is_file():
                return path.read_text(encoding="utf-8")
        return None

    def available(self) -> List[str]:
        names: List[str] = []
        for base in self.dirs:
            if not base.is_dir():
                continue
            for entry in sorted(base.iterdir()):
                if entry.is_dir() and (entry / SKILL_FILENAME).is_file() and entry.name not in names:
                    names.append(entry.name)
        return names

    def load_multiple(self, names: List[str]) -> str:
        parts = []
        for name in names:
            content = self.get_skill(name)
            if content:
                parts.append(f"### Skill: {name}\n\n{strip_frontmatter(content)}")
        return "\n\n---\n\n".join(parts)


def strip_frontmatter(content: str) -> str:
    return FRONTMATTER_RE.sub("", content, count=1).strip()
