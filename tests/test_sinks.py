"""Tests for PipeWire sink discovery."""

import json

import pytest

from soundfx.lib.sinks import Sink, SinkInventory, parse_pw_dump

from conftest import FakePipeWire, pw_dump_json


class TestParsePwDump:

    def test_keeps_only_audio_sinks_in_order(self):
        raw = pw_dump_json(("31", "alsa_output.speakers"), ("32", "bluez_output.headphones"))
        sinks = parse_pw_dump(raw)
        assert [s.name for s in sinks] == ["alsa_output.speakers", "bluez_output.headphones"]
        assert [s.id for s in sinks] == ["31", "32"]

    def test_label_from_description(self):
        sinks = parse_pw_dump(pw_dump_json(("31", "alsa_output.speakers")))
        assert sinks[0].label == "Alsa Output.Speakers"

    def test_id_falls_back_to_object_id_then_name(self):
        raw = json.dumps([
            {"id": 77, "info": {"props": {"media.class": "Audio/Sink", "node.name": "no_serial"}}},
            {"info": {"props": {"media.class": "Audio/Sink", "node.name": "bare"}}},
        ])
        sinks = parse_pw_dump(raw)
        assert sinks == [Sink("77", "no_serial", "no_serial"), Sink("bare", "bare", "bare")]

    def test_sinks_without_name_are_skipped(self):
        raw = json.dumps([{"id": 5, "info": {"props": {"media.class": "Audio/Sink"}}}])
        assert parse_pw_dump(raw) == []

    def test_objects_without_info_are_skipped(self):
        raw = json.dumps([{"id": 1}, {"id": 2, "info": None}, "garbage"])
        assert parse_pw_dump(raw) == []

    def test_non_array_output_is_an_error(self):
        with pytest.raises(ValueError):
            parse_pw_dump('{"not": "an array"}')


class TestSinkInventory:

    async def test_lists_sinks(self, pipewire):
        sinks = await SinkInventory(pipewire.run).list_sinks()
        assert [s.id for s in sinks] == ["31", "32"]
        assert pipewire.calls == [("pw-dump",)]

    async def test_fetches_fresh_every_call(self, pipewire):
        inventory = SinkInventory(pipewire.run)
        await inventory.list_sinks()
        pipewire.sinks.append(("33", "hdmi_output"))
        sinks = await inventory.list_sinks()
        assert [s.name for s in sinks][-1] == "hdmi_output"
        assert pipewire.count("pw-dump") == 2

    async def test_command_failure_gives_empty_list(self, pipewire):
        pipewire.dump_returncode = 1
        assert await SinkInventory(pipewire.run).list_sinks() == []

    async def test_unparsable_output_gives_empty_list(self, pipewire):
        pipewire.dump_output = "[{ truncated"
        assert await SinkInventory(pipewire.run).list_sinks() == []

    async def test_empty_output_gives_empty_list(self):
        pipewire = FakePipeWire()
        pipewire.dump_output = ""
        assert await SinkInventory(pipewire.run).list_sinks() == []
