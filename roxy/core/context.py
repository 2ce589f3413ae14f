"""
Context assembly: system prompt, persona files, memory and skills ahead of history.
"""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence

from .memory import Memory
from .messages import Message
from .skills import SkillsLoader


PERSONA_FILES = ("SOUL.md", "AGENT.md", "USER.md")


class ContextBuilder:
    def __init__(self, workspace: Path, system_prompt: str, skills_dir: Optional[Path] = None):
        self.workspace = workspace
        self.system_prompt = system_prompt
        self.memory = Memory(workspace)
        self.skills = SkillsLoader(workspace, skills_dir)

    def preamble(self) -> List[Message]:
        messages = [Message.system(self.system_prompt)]
        for name in PERSONA_FILES:
            path = self.workspace / name
            if path.is_file():
                text = path.read_text(encoding="utf-8").strip()
                if text:
                    messages.append(Message.system(text))
        memory = self.memory.get().strip()
        if memory:
            messages.append(Message.system(memory))
        skills = self.skills.available()
        if skills:
            messages.append(Message.system("# SKILLS\n" + "\n".join(f"- {s}" for s in skills)))
        return messages

    def build(self, history: Sequence[Message]) -> List[Message]:
        return self.preamble() + list(history)
