"""
Unit tests for the line protocol codec and command builders.
"""

import pytest

from src.bridge import messages
from src.bridge.codec import (
    Message,
    decode,
    encode,
    field_bool,
    field_int,
    parse_camera,
    parse_explosion,
    parse_hierarchical_list,
    parse_layer_list,
    parse_question_id,
    parse_training_progress,
    parse_waypoint_list,
    parse_waypoint_update,
    split_raw,
)


class TestEncodeDecode:
    """Tests for encode/decode."""

    def test_encode_joins_with_colon(self):
        assert encode("tool_select", "XRay") == "tool_select:XRay"

    def test_encode_empty_data_keeps_separator(self):
        assert encode("layer_control", "") == "layer_control:"

    def test_decode_splits_on_first_colon_only(self):
        message = decode("training_progress:50:Glue:Phase A:4:6:true")

        assert message.type == "training_progress"
        assert message.data == "50:Glue:Phase A:4:6:true"
        assert message.data_segments == ("50", "Glue", "Phase A", "4", "6", "true")

    def test_decode_keeps_raw(self):
        assert decode("tool_change:Shovel").raw == "tool_change:Shovel"

    @pytest.mark.parametrize("raw", ["no_colon", "", ":data", "   :x", None, 42])
    def test_decode_rejects_malformed(self, raw):
        assert decode(raw) is None

    def test_decode_empty_data(self):
        message = decode("task_completed:")

        assert message.type == "task_completed"
        assert message.data == ""
        assert message.data_segments == ("",)

    @pytest.mark.parametrize("msg_type,data", [("a", "b:c:d"), ("question_answer", "Q1:2:true"), ("x", "")])
    def test_round_trip(self, msg_type, data):
        message = decode(encode(msg_type, data))

        assert (message.type, message.data) == (msg_type, data)

    def test_split_raw_tolerates_missing_colon(self):
        assert split_raw("ping") == ("ping", "")

    def test_message_segments_computed(self):
        assert Message(type="t", data="1:2").data_segments == ("1", "2")


class TestFieldHelpers:
    """Tests for positional field helpers."""

    def test_field_int_default_on_garbage(self):
        assert field_int(["abc"], 0, 7) == 7
        assert field_int([], 3, -1) == -1

    def test_field_bool_only_literal_true(self):
        assert field_bool(["true"], 0) is True
        assert field_bool(["True"], 0) is False
        assert field_bool(["1"], 0) is False
        assert field_bool([], 0) is False


class TestTelegramParsers:
    """Tests for typed telegram parsers."""

    def test_training_progress_full(self):
        telegram = parse_training_progress(decode("training_progress:50:Glue:Phase A:4:6:true"))

        assert telegram.progress == 50.0
        assert telegram.task_name == "Glue"
        assert telegram.phase == "Phase A"
        assert telegram.current_task_index == 4
        assert telegram.total_tasks == 6
        assert telegram.is_active is True

    def test_training_progress_defaults(self):
        telegram = parse_training_progress(decode("training_progress:"))

        assert telegram.progress == 0.0
        assert telegram.task_name == "Not Started"
        assert telegram.phase == "NotStarted"
        assert telegram.current_task_index == 0
        assert telegram.total_tasks == 5
        assert telegram.is_active is False

    def test_training_progress_zero_total_falls_back(self):
        telegram = parse_training_progress(decode("training_progress:10:X:P:1:0:true"))

        assert telegram.total_tasks == 5

    def test_question_id_default(self):
        assert parse_question_id(decode("question_request:")) == "Q1"
        assert parse_question_id(decode("question_request:Q4")) == "Q4"

    def test_explosion(self):
        telegram = parse_explosion(decode("explosion_update:42.5:true"))

        assert telegram.value == 42.5
        assert telegram.is_animating is True

    def test_camera_defaults(self):
        telegram = parse_camera(decode("camera_update:Orbit"))

        assert telegram.mode == "Orbit"
        assert telegram.perspective == "IsometricNE"
        assert telegram.distance == 1500.0

    def test_waypoint_update_inactive_clears_index(self):
        telegram = parse_waypoint_update(decode("waypoint_update:2:Trench:false:0"))

        assert telegram.active_index == -1
        assert telegram.is_active is False

    def test_waypoint_update_active_index_zero(self):
        telegram = parse_waypoint_update(decode("waypoint_update:0:Start:true:0.5"))

        assert telegram.active_index == 0
        assert telegram.name == "Start"
        assert telegram.progress == 0.5

    def test_waypoint_list(self):
        entries = parse_waypoint_list(decode("waypoint_list:2:0:Start,1:Trench"))

        assert [(w.index, w.name) for w in entries] == [(0, "Start"), (1, "Trench")]

    def test_waypoint_list_empty(self):
        assert parse_waypoint_list(decode("waypoint_list:0")) == []

    def test_layer_list(self):
        entries = parse_layer_list(decode("layer_list:2:0:Ground:true:12,1:Pipes:false:3"))

        assert entries[0].name == "Ground"
        assert entries[0].visible is True
        assert entries[0].actor_count == 12
        assert entries[1].visible is False

    def test_hierarchical_list(self):
        entries = parse_hierarchical_list(
            decode("hierarchical_list:2:Terrain:true:false:4::,Rocks:false:true:2:Terrain:0")
        )

        assert entries[0].name == "Terrain"
        assert entries[0].parent_name is None
        assert entries[0].child_index is None
        assert entries[1].is_child is True
        assert entries[1].parent_name == "Terrain"
        assert entries[1].child_index == 0


class TestCommandBuilders:
    """Tests for outbound command builders."""

    def test_training_control(self):
        assert messages.training_control("start") == ("training_control", "start")

    def test_training_control_rejects_unknown(self):
        with pytest.raises(ValueError):
            messages.training_control("jump")

    def test_start_from_task(self):
        assert messages.start_from_task(3) == ("training_control", "start_from_task:3")

    def test_start_from_task_negative(self):
        with pytest.raises(ValueError):
            messages.start_from_task(-1)

    def test_task_start_with_pipe(self):
        assert messages.task_start("PipeConnection", "elbow") == ("task_start", "PipeConnection:elbow")
        assert messages.task_start("Glue") == ("task_start", "Glue")

    def test_question_answer(self):
        assert messages.question_answer("Q1", 2) == ("question_answer", "Q1:2:true")

    def test_explosion_level_clamped(self):
        assert messages.explosion_control(150) == ("explosion_control", "100")
        assert messages.explosion_control(-5) == ("explosion_control", "0")

    def test_camera_control_validates(self):
        assert messages.camera_control("Top") == ("camera_control", "Top")
        with pytest.raises(ValueError):
            messages.camera_control("Sideways")

    def test_hierarchical_toggle_child(self):
        assert messages.hierarchical_control("toggle_child", "Terrain", 2) == (
            "hierarchical_control",
            "toggle_child:Terrain:2",
        )
