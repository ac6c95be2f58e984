"""Packing and unpacking of signal values inside CAN payloads."""

from __future__ import annotations

from enum import IntEnum
from typing import NamedTuple, Union

MATRIX_MAX_LENGTH = 64


class MatrixType(IntEnum):
    """Bit layout used to place a signal in a payload."""

    MOTOROLA_LSB = 0
    MOTOROLA_MSB = 1
    INTEL = 2


_NAMES = {
    MatrixType.MOTOROLA_LSB: "Motorola LSB",
    MatrixType.MOTOROLA_MSB: "Motorola MSB",
    MatrixType.INTEL: "Intel",
}


class MatrixError(ValueError):
    """Raised when a signal cannot be packed or unpacked."""


def _ones(count: int) -> int:
    return (1 << count) - 1 if count > 0 else 0


class _Segment(NamedTuple):
    """The part of a signal that lives in one payload byte."""

    index: int
    keep: int
    bit_shift: int
    data_shift: int
    width: int


class Matrix:
    """Computes signal positions in a CAN payload for a given bit layout."""

    def __init__(self, type: Union[MatrixType, int] = MatrixType.MOTOROLA_LSB) -> None:
        self.type = type

    @property
    def type(self) -> MatrixType:
        """The bit layout in use."""
        return self._type

    @type.setter
    def type(self, value: Union[MatrixType, int]) -> None:
        try:
            self._type = MatrixType(value)
        except ValueError:
            raise MatrixError("invalid matrix type") from None

    @property
    def name(self) -> str:
        """Human readable name of the layout."""
        return _NAMES.get(self._type, "Unknown")

    def pack(self, buffer: bytearray, start: int, length: int, data: int) -> None:
        """Write ``data`` into ``buffer`` as a ``length``-bit signal at ``start``."""
        segments = self._segments(buffer, start, length, data)
        for segment in segments:
            value = ((data >> segment.data_shift) & _ones(segment.width)) << segment.bit_shift
            buffer[segment.index] = ((buffer[segment.index] & segment.keep) | value) & 0xFF

    def unpack(self, buffer: Union[bytes, bytearray], start: int, length: int) -> int:
        """Read the ``length``-bit signal at ``start`` from ``buffer``."""
        result = 0
        for segment in self._segments(buffer, start, length, 0):
            value = (buffer[segment.index] >> segment.bit_shift) & _ones(segment.width)
            result |= value << segment.data_shift
        return result

    def _segments(self, buffer, start: int, length: int, data: int) -> list[_Segment]:
        byte_pos, bit_pos = self._locate(start, length, data)
        if self._type is MatrixType.INTEL:
            segments = self._intel(byte_pos, bit_pos, length)
        elif self._type is MatrixType.MOTOROLA_LSB:
            segments = self._motorola_lsb(byte_pos, bit_pos, length)
        else:
            segments = self._motorola_msb(byte_pos, bit_pos, length)
        if max(segment.index for segment in segments) >= len(buffer):
            raise MatrixError("buffer too short for the signal")
        return segments

    def _locate(self, start: int, length: int, data: int) -> tuple[int, int]:
        if not 0 <= start <= 63:
            raise MatrixError("start position not in range 0~63")
        if not 0 < length <= MATRIX_MAX_LENGTH:
            raise MatrixError("data length not in range 1~64")
        if data < 0 or _ones(length) < data:
            raise MatrixError("bit length has not enough room for the data")
        byte_pos, bit_pos = divmod(start, 8)
        if length > self._available_bits(byte_pos, bit_pos):
            raise MatrixError("data length not in range 1~64")
        return byte_pos, bit_pos

    def _available_bits(self, byte_pos: int, bit_pos: int) -> int:
        if self._type is MatrixType.MOTOROLA_LSB:
            return (byte_pos + 1) * 8 - bit_pos
        if self._type is MatrixType.MOTOROLA_MSB:
            return abs((byte_pos + 1) * 8 - MATRIX_MAX_LENGTH) + bit_pos + 1
        return abs((byte_pos + 1) * 8 - MATRIX_MAX_LENGTH) + 8 - bit_pos

    @staticmethod
    def _intel(byte_pos: int, bit_pos: int, length: int) -> list[_Segment]:
        offset = bit_pos + length
        if offset <= 8:
            keep = ((0xFF << offset) | _ones(bit_pos)) & 0xFF
            return [_Segment(byte_pos, keep, bit_pos, 0, length)]
        index = (offset + 7) // 8 - 1
        first_len = 8 - bit_pos
        last_offset = index * 8 - bit_pos
        last_len = length - last_offset
        first, last = byte_pos, byte_pos + index
        segments = [_Segment(first, 0xFF >> first_len, bit_pos, 0, first_len)]
        segments.extend(
            _Segment(i, 0, 0, (i - first - 1) * 8 + first_len, 8)
            for i in range(first + 1, last)
        )
        segments.append(_Segment(last, (0xFF << last_len) & 0xFF, 0, last_offset, last_len))
        return segments

    @staticmethod
    def _motorola_lsb(byte_pos: int, bit_pos: int, length: int) -> list[_Segment]:
        offset = bit_pos + length
        if offset <= 8:
            keep = ((0xFF << offset) | _ones(bit_pos)) & 0xFF
            return [_Segment(byte_pos, keep, bit_pos, 0, length)]
        index = (offset + 7) // 8 - 1
        first_offset = index * 8 - bit_pos
        first_len = length - first_offset
        last_len = 8 - bit_pos
        first, last = byte_pos - index, byte_pos
        segments = [_Segment(first, (0xFF << first_len) & 0xFF, 0, first_offset, first_len)]
        segments.extend(
            _Segment(i, 0, 0, (last - i - 1) * 8 + last_len, 8)
            for i in range(first + 1, last)
        )
        segments.append(_Segment(last, 0xFF >> last_len, bit_pos, 0, last_len))
        return segments

    @staticmethod
    def _motorola_msb(byte_pos: int, bit_pos: int, length: int) -> list[_Segment]:
        offset = bit_pos - length + 1
        if offset >= 0:
            keep = ((0xFF << (bit_pos + 1)) | _ones(offset)) & 0xFF
            return [_Segment(byte_pos, keep, offset, 0, length)]
        remaining = -offset
        first_offset = remaining
        index = 0
        remaining -= 8
        while remaining > 0:
            index += 1
            remaining -= 8
        remaining = abs(remaining)
        if remaining > 0:
            index += 1
        last_offset = remaining
        first_len = bit_pos + 1
        last_len = 8 - remaining
        first, last = byte_pos, byte_pos + index
        segments = [_Segment(first, (0xFF << first_len) & 0xFF, 0, first_offset, first_len)]
        segments.extend(
            _Segment(i, 0, 0, (i - first - 1) * 8 + last_len, 8)
            for i in range(first + 1, last)
        )
        if last != first:
            segments.append(_Segment(last, 0xFF >> last_len, last_offset, 0, last_len))
        return segments