"""Decoding of streamed 4-byte PS/2 movement and gesture packets."""

from __future__ import annotations

import dataclasses
import logging
import time
from collections.abc import Callable, Mapping

from ps2ctl.core.buffer import InboundBuffer
from ps2ctl.core.errors import FramingDesyncError
from ps2ctl.core.formatting import format_bytes
from ps2ctl.core.model import Buttons, DecodedPacket, Gesture, Movement

LOGGER = logging.getLogger(__name__)

FRAME_SIZE = 4
FRAME_MARKER = 0x08


def _signed(magnitude: int, negative: bool) -> int:
    return magnitude - 0x100 if negative else magnitude


def gesture_name(code: int, gestures: Mapping[int, str]) -> str:
    return gestures.get(code, f"unknown_{code:02x}")


def decode_frame(frame: bytes, gestures: Mapping[int, str]) -> DecodedPacket:
    """Decode one aligned frame.

    A non-zero fourth byte is a gesture code and the middle bytes are an
    absolute position. Otherwise the frame is relative movement, with the
    sign of each axis carried in the first byte.
    """
    if len(frame) != FRAME_SIZE:
        raise ValueError(f"PS/2 frames are {FRAME_SIZE} bytes, got {len(frame)}")
    b0, b1, b2, b3 = frame

    if b3:
        return DecodedPacket(
            raw=bytes(frame),
            buttons=Buttons(left=bool(b0 & 0x01), right=bool(b0 & 0x02), middle=bool(b0 & 0x04)),
            gesture=Gesture(
                code=b3,
                name=gesture_name(b3, gestures),
                x_position=b1,
                y_position=b2,
            ),
        )

    # IntelliMouse fields come from b3, which is always zero on this branch.
    z = b3 & 0x07
    if b3 & 0x08:
        z -= 0x08
    return DecodedPacket(
        raw=bytes(frame),
        buttons=Buttons(
            left=bool(b0 & 0x01),
            right=bool(b0 & 0x02),
            middle=bool(b0 & 0x04),
            fourth=bool(b3 & 0x10),
            fifth=bool(b3 & 0x20),
        ),
        movement=Movement(
            x=_signed(b1, bool(b0 & 0x10)),
            y=_signed(b2, bool(b0 & 0x20)),
            x_overflow=bool(b0 & 0x40),
            y_overflow=bool(b0 & 0x80),
            z=z,
        ),
    )


class PacketDecoder:
    def __init__(
        self,
        buffer: InboundBuffer,
        gestures: Mapping[int, str],
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.buffer = buffer
        self.gestures = gestures
        self._clock = clock

    def decode_next(self) -> DecodedPacket | None:
        """Decode one frame from the head of the buffer.

        Returns None while fewer than four bytes are buffered. If the head
        byte lacks the frame marker the whole buffer is discarded and
        `FramingDesyncError` is raised. Packets are stamped with the clock
        reading (wall time by default) at the moment they are decoded.
        """
        if not self.buffer:
            return None
        if not self.buffer.peek() & FRAME_MARKER:
            discarded = self.buffer.flush()
            LOGGER.debug("discarded unaligned bytes: %s", format_bytes(discarded))
            raise FramingDesyncError(discarded)
        if len(self.buffer) < FRAME_SIZE:
            return None
        packet = decode_frame(self.buffer.take(FRAME_SIZE), self.gestures)
        return dataclasses.replace(packet, received_at=self._clock())
