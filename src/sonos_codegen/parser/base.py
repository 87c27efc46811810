"""Raw document models for the published device descriptions.

Device documents and the documentation index are validated into these
models at the boundary. Nothing past the loader looks at raw JSON.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr
from pydantic.alias_generators import to_camel


class _DeviceModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid", frozen=True, protected_namespaces=())


class Parameter(_DeviceModel):
    """One action argument as declared by a device."""

    name: StrictStr
    direction: Literal["in", "out"]
    related_state_variable_name: StrictStr


class Action(_DeviceModel):
    name: StrictStr
    inputs: list[Parameter] = []
    outputs: list[Parameter] = []


class StateVariable(_DeviceModel):
    """A typed UPnP state variable. Arguments take their type from one of these."""

    name: StrictStr
    data_type: StrictStr
    send_events: StrictBool
    allowed_values: list[StrictStr] | None = None


class ServiceInfo(_DeviceModel):
    name: StrictStr
    service_name: StrictStr
    discovery_uri: StrictStr
    service_id: StrictStr
    service_type: StrictStr
    control_url: StrictStr = Field(alias="controlURL")
    event_sub_url: StrictStr = Field(alias="eventSubURL")
    state_variables: list[StateVariable]
    actions: list[Action]


class ModelInfo(_DeviceModel):
    """A single device document: one model and the services it exposes."""

    model: StrictStr
    model_description: StrictStr
    software_generation: StrictInt
    software_version: StrictStr
    discovery_date: datetime
    services: list[ServiceInfo]


class _DocsModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class ActionDocs(_DocsModel):
    description: StrictStr
    params: dict[StrictStr, StrictStr] = {}


class ServiceDocs(_DocsModel):
    description: StrictStr
    actions: dict[StrictStr, ActionDocs] = {}


class FieldDocs(_DocsModel):
    name: StrictStr
    type: StrictStr
    description: StrictStr = ""


class TypeDocs(_DocsModel):
    """A named composite type declared by the documentation index."""

    description: StrictStr = ""
    fields: list[FieldDocs]


class Documentation(_DocsModel):
    """The aggregate documentation index."""

    services: dict[StrictStr, ServiceDocs] = {}
    types: dict[StrictStr, TypeDocs] = {}
