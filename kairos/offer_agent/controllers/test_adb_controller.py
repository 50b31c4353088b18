from unittest.mock import Mock

import pytest
from adbutils import AdbError

from kairos.offer_agent.controllers.adb_controller import (
    AdbActuator,
    AdbSnapshotProvider,
    escape_input_text,
    get_focused_window,
)
from kairos.offer_agent.controllers.types import EventKind

MAIN_ACTIVITY = "sinet.startup.inDriver/sinet.startup.inDriver.MainActivity"


def hierarchy_xml(label: str, package: str = "sinet.startup.inDriver") -> str:
    return (
        '<hierarchy rotation="0">'
        f'<node index="0" text="" class="android.widget.FrameLayout" package="{package}" '
        'clickable="false" bounds="[0,0][1080,2400]">'
        f'<node index="0" text="{label}" class="android.widget.TextView" package="{package}" '
        'clickable="false" bounds="[0,100][1080,160]" />'
        "</node>"
        "</hierarchy>"
    )


@pytest.fixture
def device():
    """AdbDevice double answering uiautomator and dumpsys commands."""
    fake = Mock()
    fake.window = MAIN_ACTIVITY

    def shell(command: str):
        if command.startswith("uiautomator dump"):
            return "UI hierchary dumped to: /sdcard/window_dump.xml"
        if command.startswith("dumpsys window"):
            return f"  mCurrentFocus=Window{{5e1f u0 {fake.window}}}"
        return ""

    fake.shell.side_effect = shell
    fake.sync.read_text.return_value = hierarchy_xml("Ofrece tu tarifa")
    return fake


def shell_commands(device) -> list[str]:
    return [call.args[0] for call in device.shell.call_args_list]


def test_get_focused_window(device):
    assert get_focused_window(device) == MAIN_ACTIVITY


def test_get_focused_window_without_focus(device):
    device.shell.side_effect = None
    device.shell.return_value = "mFocusedApp=null"
    assert get_focused_window(device) is None


def test_escape_input_text():
    assert escape_input_text('Calle 80 "B"') == 'Calle%s80%s\\"B\\"'


class TestAdbSnapshotProvider:
    """Test cases for AdbSnapshotProvider."""

    @pytest.mark.asyncio
    async def test_capture(self, device):
        snapshot = await AdbSnapshotProvider(device).capture()

        assert snapshot is not None
        assert snapshot.package == "sinet.startup.inDriver"
        assert snapshot.root.children[0].children[0].text == "Ofrece tu tarifa"

    @pytest.mark.asyncio
    async def test_capture_failure_returns_none(self, device):
        device.shell.side_effect = None
        device.shell.return_value = "ERROR: null root node returned by UiTestAutomationBridge."
        assert await AdbSnapshotProvider(device).capture() is None

    @pytest.mark.asyncio
    async def test_events_distinguish_window_and_content_changes(self, device):
        provider = AdbSnapshotProvider(device, target_package="sinet.startup.inDriver", poll_interval_seconds=0)
        events = provider.events()
        try:
            first = await anext(events)
            assert first.kind == EventKind.WINDOW_STATE_CHANGED

            device.sync.read_text.return_value = hierarchy_xml("Aceptar por COL$25,000")
            second = await anext(events)
            assert second.kind == EventKind.CONTENT_CHANGED
            assert second.snapshot.root.children[0].children[0].text == "Aceptar por COL$25,000"
        finally:
            await events.aclose()

    @pytest.mark.asyncio
    async def test_events_skip_other_packages(self, device):
        device.sync.read_text.side_effect = [
            hierarchy_xml("Launcher", package="com.android.launcher"),
            hierarchy_xml("Ofrece tu tarifa"),
        ]
        provider = AdbSnapshotProvider(device, target_package="sinet.startup.inDriver", poll_interval_seconds=0)
        events = provider.events()
        try:
            event = await anext(events)
            assert event.snapshot.package == "sinet.startup.inDriver"
        finally:
            await events.aclose()


class TestAdbActuator:
    """Test cases for AdbActuator."""

    @pytest.mark.asyncio
    async def test_click_taps_bounds_center(self, device, node, build_snapshot):
        snapshot = build_snapshot(node("Button", text="Oferta", bounds=(0, 1500, 1080, 1600)))
        assert await AdbActuator(device).click(snapshot.root.children[0])
        assert shell_commands(device) == ["input tap 540 1550"]

    @pytest.mark.asyncio
    async def test_click_failure_is_reported(self, device, node, build_snapshot):
        device.shell.side_effect = AdbError("device offline")
        snapshot = build_snapshot(node("Button", text="Oferta", bounds=(0, 1500, 1080, 1600)))
        assert await AdbActuator(device).click(snapshot.root.children[0]) is False

    @pytest.mark.asyncio
    async def test_click_without_bounds(self, device, node, build_snapshot):
        snapshot = build_snapshot(node("Button", bounds=(0, 0, 0, 0)))
        assert await AdbActuator(device).click(snapshot.root.children[0]) is False
        device.shell.assert_not_called()

    @pytest.mark.asyncio
    async def test_set_text_replaces_field_content(self, device, node, build_snapshot):
        snapshot = build_snapshot(node("EditText", text="25000", bounds=(0, 1300, 1080, 1400)))
        assert await AdbActuator(device).set_text(snapshot.root.children[0], "30000")

        commands = shell_commands(device)
        assert commands[0] == "input tap 540 1350"
        assert commands[1] == "input keyevent KEYCODE_MOVE_END"
        assert commands[2].split()[2:] == ["KEYCODE_DEL"] * 7
        assert commands[3] == 'input text "30000"'

    @pytest.mark.asyncio
    async def test_dispatch_tap_gesture(self, device):
        await AdbActuator(device).dispatch_tap_gesture(150, 250)
        assert shell_commands(device) == ["input tap 150 250"]
