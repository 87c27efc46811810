"""Code emitter: renders a SchemaIndex as one Python module.

The module holds, in order: enumerations and composite types (sorted by
name), then per service (sorted by name) the request and result models of
each action in source order, the service's event model, and a Protocol
with one method per action.
"""

import json
import logging
from collections import Counter

from sonos_codegen.errors import EmitError
from sonos_codegen.generator.naming import (
    MODEL_RESERVED,
    PARAM_RESERVED,
    constant_case,
    pascal_case,
    snake_case,
    unique_names,
)
from sonos_codegen.generator.validator import check_artifact
from sonos_codegen.parser.schema import (
    ActionDescriptor,
    ArgumentDescriptor,
    Composite,
    Enumeration,
    Primitive,
    Reference,
    SchemaIndex,
    ServiceDescriptor,
    ValueType,
)

logger = logging.getLogger(__name__)

HEADER = "# This file was auto-generated by sonos-codegen. Do not edit!"

PRIMITIVE_TYPES = {
    "string": "str",
    "boolean": "bool",
    "ui1": "int",
    "ui2": "int",
    "ui4": "int",
    "i1": "int",
    "i2": "int",
    "i4": "int",
    "int": "int",
    "r4": "float",
    "r8": "float",
    "number": "float",
}

# Names bound by the module's own imports.
IMPORTED_NAMES = ("BaseModel", "ClassVar", "ConfigDict", "Field", "Optional", "Protocol", "annotations", "enum")

MODEL_CONFIG = "    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())"


class CodeEmitter:
    """Renders the generated client definitions for a SchemaIndex."""

    def __init__(self, type_overrides: dict[str, str] | None = None, filename: str = "generated.py"):
        self.type_overrides = dict(type_overrides or {})
        self.filename = filename

    def emit(self, index: SchemaIndex) -> str:
        """Render ``index`` and return the module source."""
        self._index = index
        self._names: dict[str, str] = {name: "import" for name in IMPORTED_NAMES}
        self._imports: dict[str, set[str]] = {}

        blocks = []
        for name in sorted(index.types):
            value_type = index.types[name]
            if isinstance(value_type, Enumeration):
                blocks.append(self._render_enum(value_type))
            elif isinstance(value_type, Composite):
                blocks.append(self._render_composite(value_type))

        services = [index.services[name] for name in sorted(index.services)]
        action_counts = Counter(pascal_case(a.name, entity=f"{s.name}.{a.name}") for s in services for a in s.actions)
        for service in services:
            blocks.extend(self._render_service(service, action_counts))

        for class_name in sorted(self._override_classes()):
            self._claim(class_name, "type override")

        source = "\n\n\n".join([self._render_header()] + blocks + [self._render_all()]) + "\n"
        check_artifact(self.filename, source)
        logger.debug("Rendered %d top-level names for %d services", len(self._exports()), len(index.services))
        return source

    # -- names ----------------------------------------------------------

    def _claim(self, name: str, entity: str) -> str:
        if name in self._names:
            raise EmitError(f"generated name {name!r} collides with {self._names[name]}", entity=entity)
        self._names[name] = entity
        return name

    def _exports(self) -> list[str]:
        return sorted(name for name, entity in self._names.items() if entity not in ("import", "type override"))

    def _override_classes(self) -> set[str]:
        return {cls for classes in self._imports.values() for cls in classes}

    # -- type expressions -----------------------------------------------

    def _annotation(self, value_type: ValueType, entity: str, arg_name: str | None = None) -> str:
        """Python type expression for ``value_type``."""
        if isinstance(value_type, Reference):
            target = self._lookup(value_type.name, entity)
            if isinstance(target, Primitive) and target.data_type == "string":
                override = self._override(value_type.name) or (arg_name and self._override(arg_name))
                if override:
                    return override
            if isinstance(target, Reference):
                return self._annotation(target, entity, arg_name)
            value_type = target
        if isinstance(value_type, Primitive):
            return PRIMITIVE_TYPES[value_type.data_type]
        return pascal_case(value_type.name, entity=value_type.name)

    def _lookup(self, name: str, entity: str) -> ValueType:
        try:
            return self._index.types[name]
        except KeyError:
            raise EmitError(f"reference to type {name!r} which is not in the schema index", entity=entity) from None

    def _override(self, name: str) -> str | None:
        target = self.type_overrides.get(name)
        if not target:
            return None
        module, _, cls = target.rpartition(".")
        if not module or not cls.isidentifier():
            raise EmitError(f"type override {target!r} is not a dotted module.Class path", entity=name)
        self._imports.setdefault(module, set()).add(cls)
        return cls

    # -- rendering ------------------------------------------------------

    def _render_header(self) -> str:
        lines = [HEADER]
        if self._index.models:
            lines.append(f"# Device models: {', '.join(self._index.models)}")
        lines += [
            "",
            "from __future__ import annotations",
            "",
            "import enum",
            "from typing import ClassVar, Optional, Protocol",
            "",
            "from pydantic import BaseModel, ConfigDict, Field",
        ]
        if self._imports:
            lines.append("")
            for module in sorted(self._imports):
                lines.append(f"from {module} import {', '.join(sorted(self._imports[module]))}")
        return "\n".join(lines)

    def _render_all(self) -> str:
        lines = ["__all__ = ["]
        lines += [f"    {_literal(name)}," for name in self._exports()]
        lines.append("]")
        return "\n".join(lines)

    def _render_enum(self, enum_type: Enumeration) -> str:
        class_name = self._claim(pascal_case(enum_type.name, entity=enum_type.name), f"enumeration {enum_type.name}")
        members = unique_names(list(enum_type.values), constant_case, entity=enum_type.name)
        lines = [
            f"class {class_name}(str, enum.Enum):",
            _docstring(f"Allowed values of ``{enum_type.name}``.", 1),
            "",
        ]
        for member, value in zip(members, enum_type.values):
            lines.append(f"    {member} = {_literal(value)}")
        return "\n".join(lines)

    def _render_composite(self, composite: Composite) -> str:
        class_name = self._claim(pascal_case(composite.name, entity=composite.name), f"type {composite.name}")
        fields = [(f.name, self._annotation(f.value_type, composite.name), False, f.description) for f in composite.fields]
        return self._render_model(class_name, composite.description or f"The ``{composite.name}`` structure.", fields, composite.name)

    def _render_model(self, class_name: str, doc: str, fields: list[tuple[str, str, bool, str]], entity: str) -> str:
        """Render a pydantic model. ``fields`` holds (wire name, annotation, optional, description)."""
        idents = unique_names([f[0] for f in fields], snake_case, entity=entity, reserved=MODEL_RESERVED)
        lines = [
            f"class {class_name}(BaseModel):",
            _docstring(doc, 1),
            "",
            MODEL_CONFIG,
        ]
        if fields:
            lines.append("")
        for ident, (wire_name, annotation, optional, description) in zip(idents, fields):
            args = []
            if optional:
                annotation = f"Optional[{annotation}]"
                args.append("default=None")
            args.append(f"alias={_literal(wire_name)}")
            if description:
                args.append(f"description={_literal(description)}")
            lines.append(f"    {ident}: {annotation} = Field({', '.join(args)})")
        return "\n".join(lines)

    def _render_service(self, service: ServiceDescriptor, action_counts: Counter) -> list[str]:
        service_class = pascal_case(service.name, entity=service.name)
        blocks = [f"# {service.name} service"]
        methods = []

        method_names = unique_names([a.name for a in service.actions], snake_case, entity=service.name)
        for method_name, action in zip(method_names, service.actions):
            entity = f"{service.name}.{action.name}"
            base = pascal_case(action.name, entity=entity)
            if action_counts[base] > 1:
                base = service_class + base

            if action.inputs:
                request_class = self._claim(f"{base}Request", f"action {entity}")
                blocks.append(self._render_model(request_class, f"Arguments of ``{entity}``.", self._fields(action.inputs, entity), entity))
            result_class = self._claim(f"{base}Result", f"action {entity}")
            blocks.append(self._render_model(result_class, f"Result of ``{entity}``.", self._fields(action.outputs, entity), entity))
            methods.append(self._render_method(method_name, action, result_class, entity))

        if service.events:
            event_class = self._claim(f"{service_class}Event", f"events of service {service.name}")
            fields = [(f.name, self._annotation(f.value_type, service.name), True, f.description) for f in service.events]
            blocks.append(self._render_model(event_class, f"A parsed event produced by the ``{service.name}`` service.", fields, f"{service.name} events"))

        self._claim(service_class, f"service {service.name}")
        lines = [
            f"class {service_class}(Protocol):",
            _docstring(service.description or f"Actions of the ``{service.name}`` service.", 1),
            "",
            f"    SERVICE_TYPE: ClassVar[str] = {_literal(service.service_type)}",
        ]
        for method in methods:
            lines += ["", method]
        blocks.append("\n".join(lines))
        return blocks

    def _fields(self, arguments: tuple[ArgumentDescriptor, ...], entity: str) -> list[tuple[str, str, bool, str]]:
        return [(a.name, self._annotation(a.value_type, entity, a.name), a.optional, a.description) for a in arguments]

    def _render_method(self, method_name: str, action: ActionDescriptor, result_class: str, entity: str) -> str:
        params = ["self"]
        idents = unique_names([a.name for a in action.inputs], snake_case, entity=entity, reserved=PARAM_RESERVED)
        for ident, arg in zip(idents, action.inputs):
            annotation = self._annotation(arg.value_type, entity, arg.name)
            if arg.optional:
                params.append(f"{ident}: Optional[{annotation}] = None")
            else:
                params.append(f"{ident}: {annotation}")
        lines = [f"    def {method_name}({', '.join(params)}) -> {result_class}:"]
        if action.description:
            lines.append(_docstring(action.description, 2))
        lines.append("        ...")
        return "\n".join(lines)


def _literal(value: str) -> str:
    """A double-quoted Python string literal for ``value``."""
    return json.dumps(value, ensure_ascii=False)


def _docstring(text: str, level: int) -> str:
    indent = "    " * level
    text = text.strip().replace("\\", "\\\\").replace('"', '\\"')
    lines = [line.rstrip() for line in text.splitlines()] or [""]
    if len(lines) == 1:
        return f'{indent}"""{lines[0]}"""'
    body = "\n".join(f"{indent}{line}" if line else "" for line in lines[1:])
    return f'{indent}"""{lines[0]}\n{body}\n{indent}"""'
