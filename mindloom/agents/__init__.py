"""AI agent communication and registry."""

from .registry import AgentConfig, AgentRegistry, agent_registry
from .runner import AgentRunner, parse_outline_response, strip_code_fences

__all__ = [
    "AgentConfig",
    "AgentRegistry",
    "agent_registry",
    "AgentRunner",
    "parse_outline_response",
    "strip_code_fences",
]
