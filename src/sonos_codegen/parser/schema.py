"""Normalized, reference-resolved schema handed to the emitter.

The loader builds these once per run. They are frozen, so the emitter
can trust them without re-validating.
"""

from typing import Annotated, Iterator, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

PRIMITIVE_KINDS = ("string", "boolean", "ui1", "ui2", "ui4", "i1", "i2", "i4", "int", "r4", "r8", "number")


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class Primitive(_Frozen):
    kind: Literal["primitive"] = "primitive"
    data_type: str
    name: str | None = None


class Enumeration(_Frozen):
    kind: Literal["enumeration"] = "enumeration"
    name: str
    values: tuple[str, ...]


class Reference(_Frozen):
    kind: Literal["reference"] = "reference"
    name: str


class FieldDescriptor(_Frozen):
    name: str
    value_type: "ValueType"
    description: str = ""


class Composite(_Frozen):
    kind: Literal["composite"] = "composite"
    name: str
    fields: tuple[FieldDescriptor, ...]
    description: str = ""


ValueType = Annotated[Union[Primitive, Enumeration, Reference, Composite], Field(discriminator="kind")]

FieldDescriptor.model_rebuild()
Composite.model_rebuild()


class ArgumentDescriptor(_Frozen):
    """One action argument. ``value_type`` always references a named type."""

    name: str
    direction: Literal["in", "out"]
    value_type: Reference
    description: str = ""
    supported_by: tuple[str, ...] = ()
    optional: bool = False


class ActionDescriptor(_Frozen):
    name: str
    inputs: tuple[ArgumentDescriptor, ...] = ()
    outputs: tuple[ArgumentDescriptor, ...] = ()
    description: str = ""
    supported_by: tuple[str, ...] = ()

    @property
    def arguments(self) -> Iterator[ArgumentDescriptor]:
        yield from self.inputs
        yield from self.outputs


class ServiceDescriptor(_Frozen):
    name: str
    service_type: str
    description: str = ""
    actions: tuple[ActionDescriptor, ...] = ()
    events: tuple[FieldDescriptor, ...] = ()

    def action(self, name: str) -> ActionDescriptor:
        for action in self.actions:
            if action.name == name:
                return action
        raise KeyError(name)


class SchemaIndex(_Frozen):
    """All services and named types of one run, sorted by name."""

    services: dict[str, ServiceDescriptor]
    types: dict[str, ValueType]
    models: tuple[str, ...] = ()
