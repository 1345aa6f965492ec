import json
import os

import yaml

from dlq_errors import MissingResourceError, TemplateError

# --- YAML Loader Setup for CFN Tags --- START
class CfnLoader(yaml.SafeLoader):
    """SafeLoader that turns short-form intrinsic tags into their long form."""


def intrinsic_constructor(loader, tag_suffix, node):
    # !Ref and !Condition keep their name, everything else becomes Fn::<Tag>
    key = tag_suffix if tag_suffix in ('Ref', 'Condition') else f"Fn::{tag_suffix}"
    if isinstance(node, yaml.ScalarNode):
        value = loader.construct_scalar(node)
        # !GetAtt Resource.Attribute is shorthand for the two-element list
        if tag_suffix == 'GetAtt':
            value = value.split('.', 1)
        return {key: value}
    elif isinstance(node, yaml.SequenceNode):
        return {key: loader.construct_sequence(node, deep=True)}
    elif isinstance(node, yaml.MappingNode):
        return {key: loader.construct_mapping(node, deep=True)}
    else:
        raise yaml.constructor.ConstructorError(
            None, None, f"unexpected node type {node.__class__} for tag {tag_suffix}", node.start_mark)

yaml.add_multi_constructor('!', intrinsic_constructor, Loader=CfnLoader)
# --- YAML Loader Setup for CFN Tags --- END


class Resource:
    """View over one template entry ({Type, Properties}) that edits the entry in place."""

    def __init__(self, logical_id, body):
        self.logical_id = logical_id
        self.body = body

    @property
    def kind(self):
        return self.body.get('Type')

    @property
    def properties(self):
        properties = self.body.get('Properties')
        if properties is None:
            # An empty `Properties:` in YAML loads as None
            properties = self.body['Properties'] = {}
        return properties

    def environment_variables(self):
        environment = self.properties.get('Environment') or {}
        return environment.get('Variables') or {}

    def set_environment_variable(self, name, value):
        environment = self.properties.get('Environment')
        if not environment:
            environment = self.properties['Environment'] = {}
        variables = environment.get('Variables')
        if variables is None:
            variables = environment['Variables'] = {}
        variables[name] = value

    def set_redrive_target(self, dead_letter_arn):
        self.properties['RedrivePolicy'] = {'deadLetterTargetArn': dead_letter_arn}

    def __repr__(self):
        return f"Resource({self.logical_id!r}, {self.kind!r})"


class Template:
    """Wraps the Resources section of a CloudFormation template."""

    def __init__(self, resources, document=None):
        if not isinstance(resources, dict):
            raise TemplateError("Template 'Resources' section must be a mapping.")
        self.resources = resources
        self.document = document

    @classmethod
    def from_document(cls, document):
        if not isinstance(document, dict) or 'Resources' not in document:
            raise TemplateError("Template does not contain a 'Resources' section.")
        return cls(document['Resources'], document)

    def __contains__(self, logical_id):
        return logical_id in self.resources

    def __len__(self):
        return len(self.resources)

    def get(self, logical_id, expected_type=None):
        """Returns the resource or raises MissingResourceError, never a placeholder."""
        body = self.resources.get(logical_id)
        if body is None:
            raise MissingResourceError(logical_id, expected_type)
        if expected_type and body.get('Type') != expected_type:
            raise TemplateError(
                f"Resource '{logical_id}' is of type {body.get('Type')}, expected {expected_type}.")
        return Resource(logical_id, body)

    def find(self, logical_id):
        body = self.resources.get(logical_id)
        return Resource(logical_id, body) if body is not None else None

    def put(self, logical_id, resource_type, properties):
        self.resources[logical_id] = {'Type': resource_type, 'Properties': properties}
        return Resource(logical_id, self.resources[logical_id])

    def remove(self, logical_id):
        return self.resources.pop(logical_id, None)


# --- Read/Write Template Files --- START
def _is_yaml(path):
    return os.path.splitext(path)[1].lower() in ('.yml', '.yaml')


def load_document(path):
    """Loads a JSON or YAML document; YAML may use CloudFormation short-form tags."""
    if not os.path.exists(path):
        raise TemplateError(f"File not found at '{path}'")
    try:
        with open(path, 'r') as f:
            if _is_yaml(path):
                return yaml.load(f, Loader=CfnLoader)
            return json.load(f)
    except yaml.YAMLError as e:
        raise TemplateError(f"Could not parse YAML file '{path}'. Error: {e}") from e
    except json.JSONDecodeError as e:
        raise TemplateError(f"Could not decode JSON file '{path}'. Error: {e}") from e
    except IOError as e:
        raise TemplateError(f"Could not read file '{path}'. Error: {e}") from e


def load_template(path):
    """Loads a template file into a Template; the full document stays on `template.document`."""
    return Template.from_document(load_document(path))


def write_template(document, path):
    """Writes the template as JSON, or as YAML when the path ends in .yml/.yaml."""
    try:
        with open(path, 'w') as f:
            if _is_yaml(path):
                yaml.safe_dump(document, f, default_flow_style=False, sort_keys=False)
            else:
                json.dump(document, f, indent=4)
                f.write("\n")
    except IOError as e:
        raise TemplateError(f"Could not write template to '{path}'. Error: {e}") from e
# --- Read/Write Template Files --- END
