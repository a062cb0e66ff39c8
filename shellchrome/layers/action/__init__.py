"""Action Layer - element resolution and interactions."""

from shellchrome.layers.action.interaction import ActionResult, InteractionDriver
from shellchrome.layers.action.resolver import ElementResolver, ResolvedElement

__all__ = ["ActionResult", "InteractionDriver", "ElementResolver", "ResolvedElement"]
