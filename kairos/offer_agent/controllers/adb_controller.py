"""
ADB-backed device controller.

Reads the screen with `uiautomator dump` and acts on it with `input` shell commands, both through
adbutils. Blocking ADB calls run in worker threads so the event loop keeps serving the orchestrator.
"""

import asyncio
import hashlib
from collections.abc import AsyncIterator

from adbutils import AdbClient, AdbDevice, AdbError

from kairos.offer_agent.controllers.types import EventKind, ScreenEvent
from kairos.offer_agent.utils.errors import ControllerErrors
from kairos.offer_agent.utils.logger import get_logger
from kairos.offer_agent.utils.ui_hierarchy import Snapshot, UiNode

logger = get_logger(__name__)

DUMP_PATH = "/sdcard/window_dump.xml"


def get_adb_device(host: str | None = None, port: int | None = None, serial: str | None = None) -> AdbDevice:
    adb = AdbClient(host=host or "127.0.0.1", port=port or 5037)
    try:
        devices = adb.device_list()
    except AdbError as e:
        raise ControllerErrors(f"ADB server not reachable: {e}") from e

    if serial:
        if not any(d.serial == serial for d in devices):
            raise ControllerErrors(f"Device {serial} not found.")
        return adb.device(serial=serial)
    if not devices:
        raise ControllerErrors("No Android device connected.")
    logger.info(f"Using first connected device: {devices[0].serial}")
    return devices[0]


def get_focused_window(device: AdbDevice) -> str | None:
    """Returns the `package/activity` token of the focused window, if any."""
    output = str(device.shell("dumpsys window | grep mCurrentFocus"))
    if "mCurrentFocus=" not in output:
        return None
    segment = output.split("mCurrentFocus=")[-1]
    for token in segment.split():
        if "." in token and not token.startswith("Window"):
            return token.rstrip("}")
    return None


def escape_input_text(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"').replace(" ", "%s")


class AdbSnapshotProvider:
    """
    Polls the device hierarchy and turns changes into screen events.

    A change of focused window yields WINDOW_STATE_CHANGED, any other change of the dumped
    hierarchy yields CONTENT_CHANGED. Screens of other apps than `target_package` are skipped.
    """

    def __init__(
        self,
        device: AdbDevice,
        target_package: str | None = None,
        poll_interval_seconds: float = 0.5,
    ):
        self._device = device
        self._target_package = target_package
        self._poll_interval_seconds = poll_interval_seconds

    def _dump_hierarchy(self) -> str:
        output = str(self._device.shell(f"uiautomator dump {DUMP_PATH}"))
        if "ERROR" in output.upper():
            raise ControllerErrors(f"uiautomator dump failed: {output.strip()}")
        return self._device.sync.read_text(DUMP_PATH)

    def _read_screen(self) -> tuple[str, str | None]:
        return self._dump_hierarchy(), get_focused_window(self._device)

    async def capture(self) -> Snapshot | None:
        try:
            xml = await asyncio.to_thread(self._dump_hierarchy)
            return Snapshot.from_uiautomator_xml(xml)
        except (AdbError, ControllerErrors) as e:
            logger.warning(f"Could not capture the screen: {e}")
            return None

    async def events(self) -> AsyncIterator[ScreenEvent]:
        last_window: str | None = None
        last_fingerprint: str | None = None

        while True:
            try:
                xml, window = await asyncio.to_thread(self._read_screen)
                snapshot = Snapshot.from_uiautomator_xml(xml)
            except (AdbError, ControllerErrors) as e:
                logger.warning(f"Skipping unreadable screen: {e}")
                await asyncio.sleep(self._poll_interval_seconds)
                continue

            if self._target_package and snapshot.package != self._target_package:
                snapshot.release()
                await asyncio.sleep(self._poll_interval_seconds)
                continue

            fingerprint = hashlib.sha1(xml.encode("utf-8")).hexdigest()
            if window != last_window:
                kind = EventKind.WINDOW_STATE_CHANGED
            elif fingerprint != last_fingerprint:
                kind = EventKind.CONTENT_CHANGED
            else:
                snapshot.release()
                await asyncio.sleep(self._poll_interval_seconds)
                continue

            last_window, last_fingerprint = window, fingerprint
            yield ScreenEvent(kind=kind, snapshot=snapshot)
            await asyncio.sleep(self._poll_interval_seconds)


class AdbActuator:
    """Acts on the screen through `adb shell input`. Failures are logged and reported as False."""

    def __init__(self, device: AdbDevice):
        self._device = device

    async def _shell(self, command: str) -> bool:
        try:
            await asyncio.to_thread(self._device.shell, command)
            return True
        except AdbError as e:
            logger.error(f"ADB command failed ({command}): {e}")
            return False

    async def click(self, node: UiNode) -> bool:
        bounds = node.bounds
        if bounds.is_empty:
            logger.warning(f"[CLICK] Node has no usable bounds: {node}")
            return False
        center = bounds.get_center()
        return await self._shell(f"input tap {center.x} {center.y}")

    async def dispatch_tap_gesture(self, x: int, y: int) -> None:
        await self._shell(f"input tap {x} {y}")

    async def set_text(self, node: UiNode, value: str) -> bool:
        """Focuses the field, erases its current content and types `value`."""
        bounds = node.bounds
        if bounds.is_empty:
            logger.warning(f"[TEXT] Field has no usable bounds: {node}")
            return False
        center = bounds.get_center()
        chars_to_delete = len(node.text or "") + 2

        if not await self._shell(f"input tap {center.x} {center.y}"):
            return False
        if not await self._shell("input keyevent KEYCODE_MOVE_END"):
            return False
        delete_keys = " ".join(["KEYCODE_DEL"] * chars_to_delete)
        if not await self._shell(f"input keyevent {delete_keys}"):
            return False
        return await self._shell(f'input text "{escape_input_text(value)}"')
