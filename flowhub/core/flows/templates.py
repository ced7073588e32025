"""Registry of reusable flow templates."""

import logging
from typing import Any

from flowhub.core.errors import NotFoundException
from flowhub.schemas.flow import FlowDefinition

logger = logging.getLogger(__name__)


class FlowTemplates:
    """Named flow definitions that new draft flows can be created from.

    Shared by every FlowService of a process, like the connector registry.
    """

    def __init__(self) -> None:
        self._templates: dict[str, FlowDefinition] = {}

    def register(self, name: str, template: dict[str, Any]) -> FlowDefinition:
        """Register a template, replacing any template of the same name.

        Args:
            name: Template name
            template: Flow definition (name, description, trigger, settings, nodes, edges)

        Raises:
            pydantic.ValidationError: If the template is not a valid flow definition
        """
        definition = FlowDefinition.model_validate(template)
        self._templates[name] = definition
        logger.info(f"Registered flow template: {name}")
        return definition

    def get(self, name: str) -> FlowDefinition:
        """Get a template.

        Raises:
            NotFoundException: If no template is registered under the name
        """
        definition = self._templates.get(name)
        if definition is None:
            raise NotFoundException(f"Flow template not found: {name}", {"template": name})
        return definition

    def all(self) -> dict[str, dict[str, Any]]:
        return {name: definition.model_dump() for name, definition in sorted(self._templates.items())}
