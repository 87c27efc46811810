"""Schema loader: merges device documents and the documentation index.

Loading runs in two passes. The collection pass walks every device
document (in model-name order) and accumulates services, actions and named
types, rejecting conflicting shapes as it goes. The resolution pass checks
every reference against the complete type mapping, rejects cycles between
composite types, attaches documentation and freezes the result into a
SchemaIndex.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from sonos_codegen.errors import LoadError
from sonos_codegen.parser.base import Documentation, ModelInfo, Parameter, ServiceInfo
from sonos_codegen.parser.documents import read_devices, read_documentation
from sonos_codegen.parser.schema import (
    PRIMITIVE_KINDS,
    ActionDescriptor,
    ArgumentDescriptor,
    Composite,
    Enumeration,
    FieldDescriptor,
    Primitive,
    Reference,
    SchemaIndex,
    ServiceDescriptor,
    ValueType,
)

logger = logging.getLogger(__name__)

ARG_TYPE_PREFIX = "A_ARG_TYPE_"


def type_name_for(state_variable: str) -> str:
    """Name of the type declared by a state variable."""
    return state_variable.removeprefix(ARG_TYPE_PREFIX)


def load_schema(data_dir: Path, index_name: str = "documentation.json", devices_dir: str = "devices") -> SchemaIndex:
    """Load and normalize every document under ``data_dir`` into a SchemaIndex."""
    docs = read_documentation(data_dir / index_name)
    devices = read_devices(data_dir / devices_dir)

    builder = SchemaBuilder(docs, index_name)
    for document, info in devices:
        builder.add_device(document, info)
    return builder.build()


@dataclass
class _TypeEntry:
    value_type: ValueType
    document: str
    path: str


@dataclass
class _ArgumentEntry:
    param: Parameter
    document: str
    path: str
    supported_by: set[str] = field(default_factory=set)


@dataclass
class _ActionEntry:
    name: str
    inputs: list[_ArgumentEntry] = field(default_factory=list)
    outputs: list[_ArgumentEntry] = field(default_factory=list)
    supported_by: set[str] = field(default_factory=set)


@dataclass
class _ServiceEntry:
    name: str
    service_type: str
    document: str
    actions: dict[str, _ActionEntry] = field(default_factory=dict)
    events: dict[str, str] = field(default_factory=dict)


class SchemaBuilder:
    """Accumulates documents, then resolves them into a SchemaIndex."""

    def __init__(self, docs: Documentation, index_name: str = "documentation.json"):
        self.docs = docs
        self.index_name = index_name
        self.types: dict[str, _TypeEntry] = {}
        self.services: dict[str, _ServiceEntry] = {}
        self.models: list[str] = []
        self._add_documented_types()

    # -- collection pass ------------------------------------------------

    def add_device(self, document: str, info: ModelInfo) -> None:
        """Merge one device document into the accumulated schema."""
        self.models.append(info.model)
        for si, service in enumerate(info.services):
            self._add_service(document, info.model, service, f"services[{si}]")

    def _add_documented_types(self) -> None:
        for name in sorted(self.docs.types):
            type_docs = self.docs.types[name]
            path = f"types.{name}"
            names = set()
            fields = []
            for fi, f in enumerate(type_docs.fields):
                if f.name in names:
                    raise LoadError(f"duplicate field {f.name!r}", document=self.index_name, path=f"{path}.fields[{fi}].name", entity=name)
                names.add(f.name)
                fields.append(FieldDescriptor(name=f.name, value_type=_field_type(f.type), description=f.description))
            composite = Composite(name=name, fields=tuple(fields), description=type_docs.description)
            self._add_type(name, composite, self.index_name, path)

    def _add_service(self, document: str, model: str, service: ServiceInfo, path: str) -> None:
        entry = self.services.get(service.name)
        if entry is None:
            entry = _ServiceEntry(name=service.name, service_type=service.service_type, document=document)
            self.services[service.name] = entry
        elif entry.service_type != service.service_type:
            raise LoadError(
                f"service {service.name!r} has type {service.service_type!r} "
                f"but {entry.document} declares {entry.service_type!r}",
                document=document,
                path=f"{path}.serviceType",
                entity=service.name,
            )

        for vi, variable in enumerate(service.state_variables):
            var_path = f"{path}.stateVariables[{vi}]"
            type_name = type_name_for(variable.name)
            self._add_type(type_name, _state_variable_type(type_name, variable.data_type, variable.allowed_values, document, var_path), document, var_path)
            # Evented if any model sends events for it.
            if variable.send_events:
                entry.events[variable.name] = type_name

        for ai, action in enumerate(service.actions):
            action_path = f"{path}.actions[{ai}]"
            action_entry = entry.actions.get(action.name)
            if action_entry is None:
                action_entry = _ActionEntry(name=action.name)
                entry.actions[action.name] = action_entry
            action_entry.supported_by.add(model)
            label = f"{service.name}.{action.name}"
            self._merge_arguments(action_entry.inputs, action.inputs, "in", model, document, f"{action_path}.inputs", label)
            self._merge_arguments(action_entry.outputs, action.outputs, "out", model, document, f"{action_path}.outputs", label)

    def _merge_arguments(
        self,
        target: list[_ArgumentEntry],
        source: list[Parameter],
        direction: str,
        model: str,
        document: str,
        path: str,
        action: str,
    ) -> None:
        for idx, param in enumerate(source):
            if param.direction != direction:
                raise LoadError(
                    f"argument {param.name!r} has direction {param.direction!r} in the {direction!r} argument list",
                    document=document,
                    path=f"{path}[{idx}].direction",
                    entity=action,
                )
            if idx < len(target):
                existing = target[idx]
                if existing.param != param:
                    raise LoadError(
                        f"argument {idx} of action {action} is {_describe_param(param)} "
                        f"but {existing.document} declares {_describe_param(existing.param)}",
                        document=document,
                        path=f"{path}[{idx}]",
                        entity=action,
                    )
                existing.supported_by.add(model)
            else:
                target.append(_ArgumentEntry(param=param, document=document, path=f"{path}[{idx}]", supported_by={model}))

    def _add_type(self, name: str, value_type: ValueType, document: str, path: str) -> None:
        existing = self.types.get(name)
        if existing is None:
            self.types[name] = _TypeEntry(value_type=value_type, document=document, path=path)
            return
        if not _same_shape(existing.value_type, value_type):
            raise LoadError(
                f"type {name!r} is {_describe_type(value_type)} "
                f"but {existing.document} ({existing.path}) declares {_describe_type(existing.value_type)}",
                document=document,
                path=path,
                entity=name,
            )
        logger.debug("Type %s from %s matches %s", name, document, existing.document)

    # -- resolution pass ------------------------------------------------

    def build(self) -> SchemaIndex:
        """Resolve references and freeze the accumulated schema."""
        self._check_references()
        self._check_cycles()

        services = {}
        for name in sorted(self.services):
            services[name] = self._build_service(self.services[name])

        for key in sorted(self.docs.services):
            if key.removesuffix("Service") not in self.services:
                logger.debug("Documentation for unknown service %s ignored", key)

        types = {name: self.types[name].value_type for name in sorted(self.types)}
        return SchemaIndex(services=services, types=types, models=tuple(sorted(self.models)))

    def _check_references(self) -> None:
        for name in sorted(self.types):
            entry = self.types[name]
            value_type = entry.value_type
            if isinstance(value_type, Reference) and value_type.name not in self.types:
                raise LoadError(
                    f"type {name!r} refers to undefined type {value_type.name!r}",
                    document=entry.document,
                    path=entry.path,
                    entity=value_type.name,
                )
            if isinstance(value_type, Composite):
                for fi, f in enumerate(value_type.fields):
                    if isinstance(f.value_type, Reference) and f.value_type.name not in self.types:
                        raise LoadError(
                            f"field {f.name!r} of type {name!r} refers to undefined type {f.value_type.name!r}",
                            document=entry.document,
                            path=f"{entry.path}.fields[{fi}].type",
                            entity=f.value_type.name,
                        )

        for service_name in sorted(self.services):
            for action in self.services[service_name].actions.values():
                for arg in action.inputs + action.outputs:
                    type_name = type_name_for(arg.param.related_state_variable_name)
                    if type_name not in self.types:
                        raise LoadError(
                            f"argument {arg.param.name!r} of action {service_name}.{action.name} "
                            f"references undefined type {type_name!r}",
                            document=arg.document,
                            path=f"{arg.path}.relatedStateVariableName",
                            entity=type_name,
                        )

    def _check_cycles(self) -> None:
        """Reject cycles between named types."""
        done: set[str] = set()

        def visit(name: str, stack: list[str]) -> None:
            if name in done:
                return
            if name in stack:
                cycle = stack[stack.index(name):] + [name]
                entry = self.types[cycle[0]]
                raise LoadError(f"type cycle: {' -> '.join(cycle)}", document=entry.document, path=entry.path, entity=cycle[0])
            stack.append(name)
            for dep in _dependencies(self.types[name].value_type):
                visit(dep, stack)
            stack.pop()
            done.add(name)

        for name in sorted(self.types):
            visit(name, [])

    def _build_service(self, entry: _ServiceEntry) -> ServiceDescriptor:
        service_docs = self.docs.services.get(f"{entry.name}Service")
        actions = []
        for action in entry.actions.values():
            action_docs = service_docs.actions.get(action.name) if service_docs else None
            params = action_docs.params if action_docs else {}
            supported_by = tuple(sorted(action.supported_by))
            actions.append(
                ActionDescriptor(
                    name=action.name,
                    inputs=tuple(_build_argument(a, supported_by, params) for a in action.inputs),
                    outputs=tuple(_build_argument(a, supported_by, params) for a in action.outputs),
                    description=action_docs.description if action_docs else "",
                    supported_by=supported_by,
                )
            )

        events = tuple(
            FieldDescriptor(name=name, value_type=Reference(name=entry.events[name]))
            for name in sorted(entry.events)
        )
        return ServiceDescriptor(
            name=entry.name,
            service_type=entry.service_type,
            description=service_docs.description if service_docs else "",
            actions=tuple(actions),
            events=events,
        )


def _build_argument(entry: _ArgumentEntry, action_supported_by: tuple[str, ...], params: dict[str, str]) -> ArgumentDescriptor:
    supported_by = tuple(sorted(entry.supported_by))
    return ArgumentDescriptor(
        name=entry.param.name,
        direction=entry.param.direction,
        value_type=Reference(name=type_name_for(entry.param.related_state_variable_name)),
        description=params.get(entry.param.name, ""),
        supported_by=supported_by,
        optional=supported_by != action_supported_by,
    )


def _state_variable_type(name: str, data_type: str, allowed_values: list[str] | None, document: str, path: str) -> ValueType:
    if allowed_values is not None:
        seen = set()
        for idx, value in enumerate(allowed_values):
            if value in seen:
                raise LoadError(f"duplicate allowed value {value!r}", document=document, path=f"{path}.allowedValues[{idx}]", entity=name)
            seen.add(value)
        return Enumeration(name=name, values=tuple(allowed_values))
    if data_type in PRIMITIVE_KINDS:
        return Primitive(data_type=data_type, name=name)
    return Reference(name=data_type)


def _field_type(type_name: str) -> ValueType:
    if type_name in PRIMITIVE_KINDS:
        return Primitive(data_type=type_name)
    return Reference(name=type_name)


def _dependencies(value_type: ValueType) -> list[str]:
    if isinstance(value_type, Reference):
        return [value_type.name]
    if isinstance(value_type, Composite):
        return [f.value_type.name for f in value_type.fields if isinstance(f.value_type, Reference)]
    return []


def _same_shape(a: ValueType, b: ValueType) -> bool:
    if isinstance(a, Enumeration) and isinstance(b, Enumeration):
        return set(a.values) == set(b.values)
    return a == b


def _describe_type(value_type: ValueType) -> str:
    if isinstance(value_type, Enumeration):
        return f"an enumeration of {list(value_type.values)}"
    if isinstance(value_type, Primitive):
        return f"primitive {value_type.data_type!r}"
    if isinstance(value_type, Reference):
        return f"a reference to {value_type.name!r}"
    return f"a composite of fields {[f.name for f in value_type.fields]}"


def _describe_param(param: Parameter) -> str:
    return f"{param.name!r} ({param.related_state_variable_name})"
