"""
CloudFormation template parser.
Turns raw template text (JSON or YAML) into a normalized list of resources.
"""
from typing import List, Dict, Any
import json
import logging

import yaml

from stackcost.domain.template_models import Resource


logger = logging.getLogger(__name__)


class TemplateParseError(Exception):
    """Raised when template content cannot be analyzed."""
    pass


class _CloudFormationLoader(yaml.SafeLoader):
    """Safe YAML loader that understands CloudFormation short-form intrinsics."""
    pass


def _construct_intrinsic(loader: yaml.SafeLoader, tag_suffix: str, node: yaml.Node) -> Dict[str, Any]:
    """
    Convert a short-form intrinsic (e.g. !Ref, !GetAtt) to its long form.

    !GetAtt Resource.Attribute -> {"Fn::GetAtt": ["Resource", "Attribute"]}
    """
    key = tag_suffix if tag_suffix in ("Ref", "Condition") else f"Fn::{tag_suffix}"

    if isinstance(node, yaml.ScalarNode):
        value = loader.construct_scalar(node)
        if tag_suffix == "GetAtt":
            value = value.split(".", 1)
    elif isinstance(node, yaml.SequenceNode):
        value = loader.construct_sequence(node, deep=True)
    else:
        value = loader.construct_mapping(node, deep=True)

    return {key: value}


_CloudFormationLoader.add_multi_constructor("!", _construct_intrinsic)


class TemplateParser:
    """Parser for AWS CloudFormation templates in JSON or YAML syntax."""

    def parse_template(self, content: str) -> List[Resource]:
        """
        Extract resources from template content.

        JSON is tried first, then YAML. Detection never relies on a file extension.

        Args:
            content: Raw template text

        Returns:
            Resources in template declaration order

        Raises:
            TemplateParseError: If neither syntax deserializes, or the template declares no resources
        """
        document = self._deserialize(content)

        if not isinstance(document, dict):
            raise TemplateParseError("template must be a mapping with a 'Resources' section")

        declared = document.get("Resources")
        if declared is None:
            raise TemplateParseError("template contains no resources")
        if not isinstance(declared, dict):
            raise TemplateParseError("template 'Resources' section must be a mapping")
        if not declared:
            raise TemplateParseError("template contains no resources")

        resources: List[Resource] = []
        for logical_id, definition in declared.items():
            if not isinstance(definition, dict):
                raise TemplateParseError(f"resource '{logical_id}' must be a mapping")

            properties = definition.get("Properties") or {}
            if not isinstance(properties, dict):
                raise TemplateParseError(f"resource '{logical_id}' has non-mapping Properties")

            resources.append(Resource(
                type=str(definition.get("Type") or ""),
                logical_id=str(logical_id),
                properties=properties,
            ))

        logger.debug(f"Parsed {len(resources)} resources from template")
        return resources

    def supported_formats(self) -> List[str]:
        """Template formats this parser supports."""
        return ["cloudformation-json", "cloudformation-yaml"]

    def _deserialize(self, content: str) -> Any:
        """Best-effort deserialization: JSON first, then YAML."""
        try:
            return json.loads(content)
        except (json.JSONDecodeError, TypeError) as json_error:
            logger.debug(f"Template is not JSON ({json_error}), trying YAML")

        try:
            return yaml.load(content, Loader=_CloudFormationLoader)
        except yaml.YAMLError as error:
            raise TemplateParseError(f"invalid CloudFormation template format: {error}") from error


_default_parser = TemplateParser()


def parse_template(content: str) -> List[Resource]:
    """Parse template content with the default parser."""
    return _default_parser.parse_template(content)
