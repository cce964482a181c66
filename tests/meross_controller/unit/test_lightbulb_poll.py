"""Unit tests for polling, reconciliation and pushed updates on light bulbs."""

import asyncio

import pytest
from _pytest.logging import LogCaptureFixture
from conftest import FakeAdaptiveLighting, FakeHub, FakePlatform, make_accessory, status_response

from meross_controller.config import PlatformConfig
from meross_controller.const import NS_SYSTEM_ALL, NS_SYSTEM_ONLINE
from meross_controller.devices.lightbulb import MerossLightbulb
from meross_controller.exceptions import DeviceConnectionError
from meross_controller.structs import Characteristic

FULL_SYSTEM = {
    "hardware": {"macAddress": "aa:bb:cc:dd:ee:ff", "version": "4.0.0"},
    "firmware": {"version": "4.1.7", "innerIp": "192.168.1.41"},
    "online": {"status": 1},
}


def online_response(status: int) -> dict[str, object]:
    return {"data": {"header": {"method": "GETACK"}, "payload": {"online": {"status": status}}}}


class TestFirstPoll:
    @pytest.mark.asyncio
    async def test_captures_identity_and_state(self, make_bulb, platform: FakePlatform, hub: FakeHub) -> None:
        bulb = make_bulb()
        platform.poll_results = [
            status_response(
                digest={
                    "togglex": [{"channel": 0, "onoff": 1}],
                    "light": {"luminance": 70, "temperature": 50, "rgb": 0xFF0000, "capacity": 1},
                },
                system=FULL_SYSTEM,
            )
        ]

        await bulb.request_update(first_run=True)

        assert platform.polled == [NS_SYSTEM_ALL]
        accessory = bulb.accessory
        assert accessory.mac_address == "AA:BB:CC:DD:EE:FF"
        assert accessory.hardware == "4.0.0"
        assert accessory.firmware == "4.1.7"
        assert accessory.ip_address == "192.168.1.41"
        assert accessory.is_online is True
        assert len(platform.updated) == 1

        assert hub.pushed(Characteristic.ON) == [True]
        assert hub.pushed(Characteristic.BRIGHTNESS) == [70]
        assert hub.pushed(Characteristic.SATURATION) == [100]
        assert hub.pushed(Characteristic.COLOR_TEMPERATURE) == [320]
        assert bulb.update_in_progress is False

    @pytest.mark.asyncio
    async def test_first_poll_always_persists_context(self, make_bulb, platform: FakePlatform) -> None:
        bulb = make_bulb(is_online=True, ip_address="192.168.1.41")
        platform.poll_results = [status_response(digest={}, system=FULL_SYSTEM)]

        await bulb.request_update(first_run=True)

        assert len(platform.updated) == 1

    @pytest.mark.asyncio
    async def test_identity_is_not_recaptured(self, make_bulb, platform: FakePlatform) -> None:
        bulb = make_bulb(mac_address="11:22:33:44:55:66", firmware="1.0.0")
        platform.poll_results = [status_response(system=FULL_SYSTEM)]

        await bulb.request_update()

        assert bulb.accessory.mac_address == "11:22:33:44:55:66"
        assert bulb.accessory.firmware == "1.0.0"


class TestReconcile:
    @pytest.mark.asyncio
    async def test_unchanged_poll_emits_nothing(self, make_bulb, platform: FakePlatform, hub: FakeHub) -> None:
        bulb = make_bulb(is_online=True)
        digest = {"togglex": [{"channel": 0, "onoff": 1}], "light": {"luminance": 70}}
        platform.poll_results = [status_response(digest=digest), status_response(digest=digest)]

        await bulb.request_update()
        pushes_after_first = len(hub.updates)
        await bulb.request_update()

        assert pushes_after_first == 2
        assert len(hub.updates) == pushes_after_first
        assert platform.updated == []

    @pytest.mark.asyncio
    async def test_brightness_does_not_touch_power(self, make_bulb, platform: FakePlatform, hub: FakeHub) -> None:
        bulb = make_bulb()
        platform.poll_results = [
            status_response(digest={"togglex": [{"channel": 0, "onoff": 0}], "light": {"luminance": 30}})
        ]

        await bulb.request_update()

        assert bulb.cache.power is False
        assert bulb.cache.brightness == 30
        assert hub.pushed(Characteristic.ON) == []
        assert hub.pushed(Characteristic.BRIGHTNESS) == [30]

    @pytest.mark.asyncio
    async def test_channel_selects_togglex_entry(self, make_bulb, platform: FakePlatform) -> None:
        bulb = make_bulb("MSS620", channel=1)
        platform.poll_results = [
            status_response(digest={"togglex": [{"channel": 0, "onoff": 0}, {"channel": 1, "onoff": 1}]})
        ]

        await bulb.request_update()

        assert bulb.cache.power is True

    @pytest.mark.asyncio
    async def test_single_outlet_model_reads_toggle(self, make_bulb, platform: FakePlatform, hub: FakeHub) -> None:
        bulb = make_bulb("MSS1101")
        platform.poll_results = [status_response(digest={"toggle": {"onoff": 1}})]

        await bulb.request_update()

        assert hub.pushed(Characteristic.ON) == [True]

    @pytest.mark.asyncio
    async def test_rgb_disables_adaptive_lighting(self, make_bulb, platform: FakePlatform) -> None:
        adaptive_lighting = FakeAdaptiveLighting(active=True)
        bulb = make_bulb(adaptive_lighting=adaptive_lighting)
        platform.poll_results = [status_response(digest={"light": {"rgb": 0x0000FF}})]

        await bulb.request_update()

        assert adaptive_lighting.disable_calls == 1
        assert bulb.cache.hue == 240

    @pytest.mark.asyncio
    async def test_large_mired_jump_disables_adaptive_lighting(self, make_bulb, platform: FakePlatform) -> None:
        adaptive_lighting = FakeAdaptiveLighting(active=True)
        bulb = make_bulb(adaptive_lighting=adaptive_lighting)
        platform.poll_results = [status_response(digest={"light": {"temperature": 50}})]

        await bulb.request_update()

        assert bulb.cache.mired == 320
        assert adaptive_lighting.disable_calls == 1

    @pytest.mark.asyncio
    async def test_small_mired_drift_keeps_adaptive_lighting(
        self,
        make_bulb,
        platform: FakePlatform,
        hub: FakeHub,
    ) -> None:
        hub.values[Characteristic.COLOR_TEMPERATURE] = 320
        adaptive_lighting = FakeAdaptiveLighting(active=True)
        bulb = make_bulb(adaptive_lighting=adaptive_lighting)
        platform.poll_results = [status_response(digest={"light": {"temperature": 49}})]

        await bulb.request_update()

        assert bulb.cache.mired == 324
        assert adaptive_lighting.disable_calls == 0

    @pytest.mark.asyncio
    async def test_ip_drift_persists_context(self, make_bulb, platform: FakePlatform) -> None:
        bulb = make_bulb(is_online=True, ip_address="192.168.1.40")
        platform.poll_results = [status_response(system={"firmware": {"innerIp": "192.168.1.77"}})]

        await bulb.request_update()

        assert bulb.accessory.ip_address == "192.168.1.77"
        assert len(platform.updated) == 1


class TestOnlineState:
    @pytest.mark.asyncio
    async def test_online_only_model_uses_online_namespace(self, make_bulb, platform: FakePlatform) -> None:
        bulb = make_bulb("MSL320")
        platform.poll_results = [online_response(1)]

        await bulb.request_update()

        assert platform.polled == [NS_SYSTEM_ONLINE]
        assert bulb.accessory.is_online is True
        assert len(platform.updated) == 1

    @pytest.mark.asyncio
    async def test_reported_offline(self, make_bulb, platform: FakePlatform) -> None:
        bulb = make_bulb("MSL320", is_online=True)
        platform.poll_results = [online_response(0)]

        await bulb.request_update()

        assert bulb.accessory.is_online is False
        assert len(platform.updated) == 1

    @pytest.mark.asyncio
    async def test_unreachable_marks_offline_then_recovers(self, make_bulb, platform: FakePlatform) -> None:
        bulb = make_bulb(is_online=True)
        platform.poll_results = [OSError("connect EHOSTUNREACH 192.168.1.40:80"), status_response(digest={})]

        await bulb.request_update()

        assert bulb.accessory.is_online is False
        assert len(platform.updated) == 1

        await bulb.request_update()

        assert bulb.accessory.is_online is True
        assert len(platform.updated) == 2

    @pytest.mark.asyncio
    async def test_transport_reason_marks_offline(self, make_bulb, platform: FakePlatform) -> None:
        bulb = make_bulb(is_online=True)
        platform.poll_results = [DeviceConnectionError("ETIMEDOUT"), DeviceConnectionError("ECONNREFUSED")]

        await bulb.request_update()

        assert bulb.accessory.is_online is False
        assert len(platform.updated) == 1

        bulb.accessory.is_online = True
        await bulb.request_update()

        assert bulb.accessory.is_online is True
        assert len(platform.updated) == 1

    @pytest.mark.asyncio
    async def test_other_errors_keep_device_online(self, make_bulb, platform: FakePlatform) -> None:
        bulb = make_bulb(is_online=True)
        platform.poll_results = [ValueError("unexpected response body")]

        await bulb.request_update()

        assert bulb.accessory.is_online is True
        assert platform.updated == []

    @pytest.mark.asyncio
    async def test_first_poll_timeout_persists_offline(self, make_bulb, platform: FakePlatform) -> None:
        bulb = make_bulb(is_online=False)
        platform.poll_results = [TimeoutError()]

        await bulb.request_update(first_run=True)

        assert bulb.accessory.is_online is False
        assert len(platform.updated) == 1

    @pytest.mark.asyncio
    async def test_failure_logged_only_with_debug_logging(
        self,
        make_bulb,
        platform: FakePlatform,
        caplog: LogCaptureFixture,
    ) -> None:
        quiet = make_bulb(name="Quiet Lamp")
        chatty = make_bulb(name="Chatty Lamp", enable_debug_logging=True)
        platform.poll_results = [ValueError("bad body"), ValueError("bad body")]

        await quiet.request_update()
        await chatty.request_update()

        assert "Quiet Lamp: failed to refresh status" not in caplog.text
        assert "Chatty Lamp: failed to refresh status as bad body" in caplog.text
        record = next(r for r in caplog.records if "Chatty Lamp: failed to refresh status" in r.getMessage())
        assert record.extra_data == {"device_id": "dev-1", "namespace": NS_SYSTEM_ALL}


class TestPollScheduling:
    @pytest.mark.asyncio
    async def test_poll_skipped_while_update_in_progress(self, make_bulb, platform: FakePlatform) -> None:
        bulb = make_bulb()
        bulb.update_in_progress = True

        await bulb.request_update()

        assert platform.polled == []

    @pytest.mark.asyncio
    async def test_poll_skipped_during_in_flight_write(self, make_bulb, platform: FakePlatform) -> None:
        bulb = make_bulb()
        platform.send_delay = 0.05
        order: list[str] = []
        original_send = platform.send_update
        original_request = platform.request_update

        async def _send(accessory, command):
            order.append("send")
            return await original_send(accessory, command)

        async def _request(accessory, namespace):
            order.append("poll")
            return await original_request(accessory, namespace)

        platform.send_update = _send
        platform.request_update = _request

        write = asyncio.create_task(bulb.set_power(True))
        await asyncio.sleep(bulb.debounce_delay + 0.02)
        # A write is in flight, so a periodic poll is skipped outright
        await bulb.request_update()
        await write

        assert order == ["send"]

    @pytest.mark.asyncio
    async def test_start_polls_once_without_refresh(self, make_bulb, platform: FakePlatform) -> None:
        bulb = make_bulb()

        bulb.start()
        await asyncio.sleep(0.02)

        assert platform.polled == [NS_SYSTEM_ALL]
        assert bulb._poll_task is None
        await bulb.stop()

    @pytest.mark.asyncio
    async def test_periodic_polling(self, make_bulb, platform: FakePlatform, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(MerossLightbulb, "poll_interval", property(lambda self: 0.02))
        bulb = make_bulb()

        bulb.start()
        await asyncio.sleep(0.09)
        await bulb.stop()
        polls = len(platform.polled)
        await asyncio.sleep(0.05)

        assert polls >= 3
        assert len(platform.polled) == polls

    def test_cloud_devices_use_cloud_refresh_rate(self, hub: FakeHub) -> None:
        platform = FakePlatform(PlatformConfig(refresh_rate=30, cloud_refresh_rate=300))

        local = MerossLightbulb(platform, make_accessory(connection="local"), hub)
        cloud = MerossLightbulb(platform, make_accessory(connection="cloud"), hub)

        assert local.poll_interval == 30
        assert cloud.poll_interval == 300


class TestPush:
    @pytest.mark.asyncio
    async def test_push_merges_like_a_poll(self, make_bulb, hub: FakeHub) -> None:
        bulb = make_bulb()

        bulb.receive_update(
            {
                "header": {"method": "PUSH", "namespace": "Appliance.Control.ToggleX"},
                "payload": {"togglex": [{"channel": 0, "onoff": 1}]},
            }
        )
        bulb.receive_update({"header": {"method": "PUSH"}, "payload": {"light": {"luminance": 15}}})

        assert hub.pushed(Characteristic.ON) == [True]
        assert hub.pushed(Characteristic.BRIGHTNESS) == [15]
        assert bulb.cache.power is True

    def test_push_never_changes_identity_or_online(self, make_bulb, hub: FakeHub) -> None:
        bulb = make_bulb(is_online=False)
        before = bulb.accessory.model_copy()

        bulb.receive_update({"payload": {"light": {"luminance": 15}, "all": {"system": FULL_SYSTEM}}})

        assert bulb.accessory == before

    def test_unknown_push_is_ignored(self, make_bulb, hub: FakeHub) -> None:
        bulb = make_bulb()

        bulb.receive_update({"payload": {"timer": {"id": 1}}})

        assert hub.updates == []

    def test_malformed_push_is_dropped_with_warning(
        self,
        make_bulb,
        hub: FakeHub,
        caplog: LogCaptureFixture,
    ) -> None:
        bulb = make_bulb()

        bulb.receive_update({"payload": {"light": {"luminance": "bright"}}})

        assert hub.updates == []
        assert "failed to apply pushed update" in caplog.text
