import ast
import inspect
from collections import Counter

import pytest

from builders import action, arg, device, group_management_device, out, service, var, write_data
from sonos_codegen.errors import EmitError
from sonos_codegen.generator.emitter import CodeEmitter
from sonos_codegen.generator.naming import snake_case
from sonos_codegen.parser.loader import load_schema
from sonos_codegen.parser.schema import ActionDescriptor, ArgumentDescriptor, Reference, SchemaIndex, ServiceDescriptor


def _emit(root, devices, docs=None, **kwargs) -> str:
    write_data(root, devices, docs=docs)
    return CodeEmitter(**kwargs).emit(load_schema(root))


def _class_names(source: str) -> list[str]:
    return [node.name for node in ast.parse(source).body if isinstance(node, ast.ClassDef)]


class TestAddMemberExample:
    def test_enumeration_has_two_members(self, tmp_path, import_generated):
        module = import_generated(_emit(tmp_path, [group_management_device()]))
        assert [m.value for m in module.BoolType] == ["true", "false"]
        assert module.BoolType.TRUE == "true"

    def test_result_structure(self, tmp_path, import_generated):
        source = _emit(tmp_path, [group_management_device()])
        assert '    success: BoolType = Field(alias="Success")' in source
        module = import_generated(source)
        assert list(module.AddMemberResult.model_fields) == ["success"]
        result = module.AddMemberResult.model_validate({"Success": "false"})
        assert result.success is module.BoolType.FALSE

    def test_signature(self, tmp_path, import_generated):
        source = _emit(tmp_path, [group_management_device()])
        assert "    def add_member(self, member_id: str) -> AddMemberResult:" in source
        module = import_generated(source)
        params = inspect.signature(module.GroupManagement.add_member).parameters
        assert list(params) == ["self", "member_id"]

    def test_request_structure_keeps_wire_names(self, tmp_path, import_generated):
        module = import_generated(_emit(tmp_path, [group_management_device()]))
        request = module.AddMemberRequest(member_id="RINCON_000E58A0123401400")
        assert request.model_dump(by_alias=True) == {"MemberID": "RINCON_000E58A0123401400"}

    def test_service_type_constant(self, tmp_path, import_generated):
        module = import_generated(_emit(tmp_path, [group_management_device()]))
        assert module.GroupManagement.SERVICE_TYPE == "urn:schemas-upnp-org:service:GroupManagement:1"


class TestFixtureOutput:
    def test_header(self, fixture_data):
        source = CodeEmitter().emit(load_schema(fixture_data))
        assert source.startswith("# This file was auto-generated by sonos-codegen. Do not edit!\n# Device models: S1, S2\n")

    def test_idempotent(self, fixture_data):
        index = load_schema(fixture_data)
        assert CodeEmitter().emit(index) == CodeEmitter().emit(load_schema(fixture_data))

    def test_definition_order(self, fixture_data):
        names = _class_names(CodeEmitter().emit(load_schema(fixture_data)))
        assert names == [
            "BoolType",
            "CurrentPlayMode",
            "TrackInfo",
            "TransportPlaySpeed",
            "TransportState",
            "PlayRequest",
            "PlayResult",
            "GetTransportInfoRequest",
            "GetTransportInfoResult",
            "PauseRequest",
            "PauseResult",
            "AVTransportEvent",
            "AVTransport",
            "AddMemberRequest",
            "AddMemberResult",
            "GroupManagement",
        ]

    def test_every_action_has_one_matching_signature(self, fixture_data, import_generated):
        index = load_schema(fixture_data)
        module = import_generated(CodeEmitter().emit(index))
        for service_ in index.services.values():
            protocol = getattr(module, service_.name)
            for action_ in service_.actions:
                method = getattr(protocol, snake_case(action_.name))
                params = list(inspect.signature(method).parameters)
                assert params == ["self"] + [snake_case(a.name) for a in action_.inputs]
                result = getattr(module, f"{action_.name}Result")
                assert [f.alias for f in result.model_fields.values()] == [a.name for a in action_.outputs]

    def test_referenced_types_defined_once(self, fixture_data):
        index = load_schema(fixture_data)
        counts = Counter(_class_names(CodeEmitter().emit(index)))
        for name in ("BoolType", "CurrentPlayMode", "TrackInfo", "TransportPlaySpeed", "TransportState"):
            assert counts[name] == 1
        assert "InstanceID" not in counts
        assert "CurrentTrackInfo" not in counts

    def test_named_primitives_and_references_resolve_inline(self, fixture_data):
        source = CodeEmitter().emit(load_schema(fixture_data))
        assert "    def play(self, instance_id: int, speed: TransportPlaySpeed) -> PlayResult:" in source
        assert '    current_track: Optional[TrackInfo] = Field(default=None, alias="CurrentTrack")' in source

    def test_optional_output_and_nested_composite(self, fixture_data, import_generated):
        module = import_generated(CodeEmitter().emit(load_schema(fixture_data)))
        info = module.GetTransportInfoResult.model_validate({"CurrentTransportState": "PLAYING", "CurrentSpeed": "1"})
        assert info.current_transport_state is module.TransportState.PLAYING
        assert info.current_speed is module.TransportPlaySpeed.V_1
        assert info.current_track is None

        info = module.GetTransportInfoResult.model_validate({
            "CurrentTransportState": "STOPPED",
            "CurrentSpeed": "1",
            "CurrentTrack": {"Title": "Blue in Green", "Duration": 337, "State": "STOPPED"},
        })
        assert info.current_track.duration == 337
        assert info.current_track.state is module.TransportState.STOPPED

    def test_event_model(self, fixture_data, import_generated):
        module = import_generated(CodeEmitter().emit(load_schema(fixture_data)))
        event = module.AVTransportEvent.model_validate({"TransportState": "PLAYING"})
        assert event.transport_state is module.TransportState.PLAYING
        assert event.current_play_mode is None

    def test_documentation(self, fixture_data, import_generated):
        source = CodeEmitter().emit(load_schema(fixture_data))
        assert 'speed: TransportPlaySpeed = Field(alias="Speed", description="Play speed usually `1`")' in source
        module = import_generated(source)
        assert module.AVTransport.play.__doc__ == "Start playing the current track."
        assert module.TrackInfo.__doc__ == "Summary of the track that is currently playing."
        assert module.TrackInfo.model_fields["duration"].description == "Length in seconds"

    def test_all_lists_generated_classes(self, fixture_data, import_generated):
        source = CodeEmitter().emit(load_schema(fixture_data))
        module = import_generated(source)
        assert module.__all__ == sorted(_class_names(source))


class TestIdentifiers:
    def test_keyword_argument_renamed(self, tmp_path):
        doc = device("S1", [service(
            "ContentDirectory",
            [var("A_ARG_TYPE_ObjectID"), var("A_ARG_TYPE_Type")],
            [action("Browse", inputs=[arg("ObjectID", "A_ARG_TYPE_ObjectID"), arg("Type", "A_ARG_TYPE_Type")])],
        )])
        source = _emit(tmp_path, [doc])
        assert "    def browse(self, object_id: str, type_: str) -> BrowseResult:" in source
        assert '    type_: str = Field(alias="Type")' in source

    def test_unmappable_action_name(self, tmp_path):
        doc = device("S1", [service("AlarmClock", [var("Volume", "ui2")], [action("???")])])
        with pytest.raises(EmitError) as exc_info:
            _emit(tmp_path, [doc])
        assert exc_info.value.entity == "AlarmClock.???"

    def test_colliding_enumeration_literals(self, tmp_path):
        doc = device("S1", [service("Switch", [var("PowerState", allowed=["on", "ON"])], [])])
        with pytest.raises(EmitError) as exc_info:
            _emit(tmp_path, [doc])
        assert exc_info.value.entity == "PowerState"

    def test_colliding_argument_names(self, tmp_path):
        doc = device("S1", [service(
            "Queue",
            [var("A_ARG_TYPE_URI")],
            [action("AddURI", inputs=[arg("URI", "A_ARG_TYPE_URI"), arg("uri", "A_ARG_TYPE_URI")])],
        )])
        with pytest.raises(EmitError, match="both map to identifier 'uri'"):
            _emit(tmp_path, [doc])

    def test_action_name_shared_between_services(self, tmp_path):
        volume = [var("Volume", "ui2")]
        get_volume = [action("GetVolume", outputs=[out("CurrentVolume", "Volume")])]
        doc = device("S1", [service("RenderingControl", volume, get_volume), service("GroupRenderingControl", volume, get_volume)])
        names = _class_names(_emit(tmp_path, [doc]))
        assert "GroupRenderingControlGetVolumeResult" in names
        assert "RenderingControlGetVolumeResult" in names
        assert "GetVolumeResult" not in names

    def test_type_name_collides_with_result(self, tmp_path):
        doc = device("S1", [service(
            "GroupManagement",
            [var("AddMemberResult", allowed=["OK"])],
            [action("AddMember", outputs=[out("Status", "AddMemberResult")])],
        )])
        with pytest.raises(EmitError) as exc_info:
            _emit(tmp_path, [doc])
        assert exc_info.value.entity == "action GroupManagement.AddMember"
        assert "enumeration AddMemberResult" in str(exc_info.value)


class TestTypeOverrides:
    def test_string_type_annotated_with_override(self, tmp_path):
        doc = device("S1", [service(
            "ZoneGroupTopology",
            [var("ZoneGroupState")],
            [action("GetZoneGroupState", outputs=[out("ZoneGroupState", "ZoneGroupState")])],
        )])
        source = _emit(tmp_path, [doc], type_overrides={"ZoneGroupState": "sonos.xmlutil.ZoneGroupState"})
        assert "\nfrom sonos.xmlutil import ZoneGroupState\n" in source
        assert '    zone_group_state: ZoneGroupState = Field(alias="ZoneGroupState")' in source
        assert '"ZoneGroupState"' not in source.split("__all__")[1]

    def test_override_by_argument_name(self, tmp_path):
        doc = device("S1", [service(
            "AVTransport",
            [var("A_ARG_TYPE_URIMetaData")],
            [action("SetAVTransportURI", inputs=[arg("CurrentURIMetaData", "A_ARG_TYPE_URIMetaData")])],
        )])
        source = _emit(tmp_path, [doc], type_overrides={"CurrentURIMetaData": "sonos.didl.TrackMetaData"})
        assert "current_uri_meta_data: TrackMetaData)" in source

    def test_override_colliding_with_generated_class(self, tmp_path):
        with pytest.raises(EmitError, match="collides"):
            _emit(tmp_path, [group_management_device()], type_overrides={"MemberID": "sonos.xmlutil.BoolType"})

    def test_invalid_override_path(self, tmp_path):
        with pytest.raises(EmitError, match="dotted module.Class"):
            _emit(tmp_path, [group_management_device()], type_overrides={"MemberID": "MemberId"})


class TestDocstrings:
    def test_quotes_and_backslashes(self, tmp_path, import_generated):
        docs = {"services": {"GroupManagementService": {"description": 'Say "hi" \\ then """bye"""'}}}
        module = import_generated(_emit(tmp_path, [group_management_device()], docs=docs))
        assert module.GroupManagement.__doc__ == 'Say "hi" \\ then """bye"""'

    def test_multiline(self, tmp_path, import_generated):
        docs = {"services": {"GroupManagementService": {
            "description": "Services related to groups.",
            "actions": {"AddMember": {"description": "Add a player.\n\nThe player leaves its old group."}},
        }}}
        module = import_generated(_emit(tmp_path, [group_management_device()], docs=docs))
        assert inspect.getdoc(module.GroupManagement.add_member) == "Add a player.\n\nThe player leaves its old group."


class TestInvariants:
    def test_reference_missing_from_index(self):
        member = ArgumentDescriptor(name="MemberID", direction="in", value_type=Reference(name="MemberID"))
        index = SchemaIndex(
            services={"GroupManagement": ServiceDescriptor(
                name="GroupManagement",
                service_type="urn:schemas-upnp-org:service:GroupManagement:1",
                actions=(ActionDescriptor(name="AddMember", inputs=(member,)),),
            )},
            types={},
        )
        with pytest.raises(EmitError, match="not in the schema index") as exc_info:
            CodeEmitter().emit(index)
        assert exc_info.value.entity == "GroupManagement.AddMember"

    def test_unsorted_index_emits_sorted(self, fixture_data):
        index = load_schema(fixture_data)
        shuffled = SchemaIndex(
            services=dict(reversed(list(index.services.items()))),
            types=dict(reversed(list(index.types.items()))),
            models=index.models,
        )
        assert CodeEmitter().emit(shuffled) == CodeEmitter().emit(index)


class TestLiterals:
    def test_non_bmp_characters_survive(self, tmp_path, import_generated):
        doc = device("S1", [service("Ambience", [var("Mood", allowed=["a\U0001F3B5", "plain"])], [])])
        doc["services"][0]["serviceType"] = "urn:schemas-example-org:service:Ambience\U0001F3B5:1"
        source = _emit(tmp_path, [doc])
        assert "\\ud83c" not in source

        module = import_generated(source)
        assert [m.value for m in module.Mood] == ["a\U0001F3B5", "plain"]
        assert module.Mood("a\U0001F3B5") is module.Mood.A
        assert module.Ambience.SERVICE_TYPE == "urn:schemas-example-org:service:Ambience\U0001F3B5:1"
