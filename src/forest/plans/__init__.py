"""Plan installation helpers."""

from .installer import PlanFormatError, install_plan, load_plan

__all__ = ["PlanFormatError", "install_plan", "load_plan"]
