"""Built-in reconciliation forums."""

from .agent import AgentForum, parse_planner_response
from .template import TemplateForum

__all__ = ["AgentForum", "TemplateForum", "parse_planner_response"]
