"""Bluetooth heart-rate strap source.

Connects to a strap advertising the standard Heart Rate service and turns
each Heart Rate Measurement notification into a heart-rate sample for the
active workout builder.  The strap stands in for the watch's own optical
sensor when the app runs on a desktop.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from bleak import BleakClient

from config.settings import get_settings
from StaminaBar.common.kinds import DataKind, Sample
from StaminaBar.heartrate_mon.backoff import retry_async

logger = logging.getLogger(__name__)

HR_CHAR_UUID = "00002a37-0000-1000-8000-00805f9b34fb"

BpmCallback = Callable[[int], None]


def parse_hr_measurement(data: bytes | bytearray) -> Optional[int]:
    """
    Parse Bluetooth Heart Rate Measurement (0x2A37).
    Handles 8-bit and 16-bit values; zero and out-of-range readings are dropped.
    """
    if not data or len(data) < 2:
        return None
    flags = data[0]
    if flags & 0x01:
        if len(data) < 3:
            return None
        bpm = int.from_bytes(data[1:3], "little")
    else:
        bpm = int(data[1])
    if bpm <= 0 or bpm > 510:
        return None
    return bpm


async def _wait_for_disconnect(client: BleakClient, disconnected: asyncio.Event) -> None:
    """Return once the strap disconnects."""
    while client.is_connected and not disconnected.is_set():
        try:
            await asyncio.wait_for(disconnected.wait(), timeout=1.0)
        except asyncio.TimeoutError:
            continue


class HeartRateStrap:
    def __init__(self, mac: Optional[str] = None, on_bpm: Optional[BpmCallback] = None) -> None:
        self.mac = mac or get_settings().HR_STRAP_MAC
        self.on_bpm = on_bpm
        self.status = "IDLE"
        self.last_bpm: Optional[int] = None

    def write_status(self, text: str) -> None:
        if text != self.status:
            logger.info("Strap %s: %s", self.mac or "-", text)
        self.status = text

    def handle_data(self, sender_or_data, maybe_data: Optional[bytes] = None) -> None:
        data = maybe_data if maybe_data is not None else sender_or_data
        bpm = parse_hr_measurement(data)
        if bpm is None:
            return
        self.last_bpm = bpm
        if self.on_bpm is not None:
            self.on_bpm(bpm)

    async def run(self) -> None:
        if not self.mac:
            self.write_status("NO_MAC")
            raise RuntimeError("No heart-rate strap address configured (HR_STRAP_MAC)")

        self.write_status("CONNECTING")
        disconnected = asyncio.Event()
        try:
            async with BleakClient(self.mac, disconnected_callback=lambda _c: disconnected.set()) as client:
                self.write_status("CONNECTED")
                await client.start_notify(HR_CHAR_UUID, self.handle_data)
                try:
                    await _wait_for_disconnect(client, disconnected)
                finally:
                    if client.is_connected:
                        await client.stop_notify(HR_CHAR_UUID)
        except Exception:
            self.write_status("DISCONNECTED")
            raise
        self.write_status("DISCONNECTED")
        raise ConnectionError(f"strap {self.mac} disconnected")

    async def run_forever(self, **backoff) -> None:
        """Keep the strap connected, reconnecting with backoff after drops."""
        await retry_async(self.run, status_update=self.write_status, logger=logger, **backoff)


def builder_sink(controller) -> BpmCallback:
    """Return a callback feeding readings into ``controller``'s active builder."""

    def _push(bpm: int) -> None:
        builder = controller.builder
        if builder is None:
            return
        now = datetime.now()
        builder.add_samples([Sample(DataKind.HEART_RATE, float(bpm), now, now)])

    return _push


__all__ = ["HR_CHAR_UUID", "parse_hr_measurement", "HeartRateStrap", "builder_sink"]
