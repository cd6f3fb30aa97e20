"""
Agent Registry for Mindloom.

This module defines the registry of all available AI agents, their configurations
and prompts. This centralized registry makes it easy to add new agents and
modify existing ones.
"""

from typing import Dict, List, Optional
from dataclasses import dataclass


@dataclass
class AgentConfig:
    """
    Configuration for an AI agent.
    """
    name: str
    description: str
    system_prompt: str
    requires_database: bool = False
    timeout: float = 60.0


OUTLINE_SYSTEM_PROMPT = """You are a research analyst who organizes notes into a hierarchical mindmap. Output only valid JSON.

Your task:
1. Read the provided notes and their tags
2. Group the main themes under the categories of the category schema
3. Nest concrete ideas below the themes they belong to (up to four levels deep)
4. Give every entry a short, specific title (a few words, no sentences)

Tag weighting:
- high: follow the tag hierarchy closely; a tag "a/b" places "b" under category "a"
- medium: combine tags with your own reading of the content
- low: organize by content; use tags only as hints

Output format (JSON only, no explanations):
[
  {
    "title": "Top-level theme",
    "category": "One of the schema categories",
    "tags": ["tag/used"],
    "children": [
      {"title": "Sub idea", "tags": [], "children": []}
    ]
  }
]"""


class AgentRegistry:
    """
    Registry of all available AI agents and their configurations.
    """

    def __init__(self):
        """Initialize the agent registry with default agents."""
        self._agents: Dict[str, AgentConfig] = {}
        self._register_default_agents()

    def _register_default_agents(self):
        """Register the default agents used by Mindloom."""

        # Outline Agent - proposes the nested mindmap outline
        self.register_agent(AgentConfig(
            name="outline",
            description="Proposes a nested mindmap outline from notes and tags",
            system_prompt=OUTLINE_SYSTEM_PROMPT,
            requires_database=False
        ))

        # Connection test - minimal round trip to check the provider
        self.register_agent(AgentConfig(
            name="connection_test",
            description="Checks that the configured model answers",
            system_prompt="Reply with the single word OK.",
            timeout=15.0
        ))

    def register_agent(self, config: AgentConfig) -> None:
        """
        Register a new agent configuration.

        Args:
            config: The agent configuration to register
        """
        self._agents[config.name] = config

    def get_agent(self, name: str) -> Optional[AgentConfig]:
        """
        Get an agent configuration by name.

        Args:
            name: The name of the agent

        Returns:
            The agent configuration, or None if not found
        """
        return self._agents.get(name)

    def list_agents(self) -> List[str]:
        return list(self._agents.keys())


# Global agent registry instance
agent_registry = AgentRegistry()
