"""Log records and their on-disk encoding.

Layout of an encoded record (all integers big-endian):

    length: u32          bytes from the checksum through the end of the value
    crc32: u32           CRC-32 of the bytes from attributes through the value
    attributes: u8       bit 0: is_control, bit 1: is_transactional
    offset: u64
    timestamp_ms: u64
    producer_id: u64
    producer_epoch: u16
    sequence_number: u32
    header_count: u32
    per header: key_len u32, key (utf-8), value_len u32, value
    key_len: u32, key
    value_len: u32, value
"""

from __future__ import annotations

import struct
import zlib
from dataclasses import dataclass, field
from typing import BinaryIO

from chronicle.errors import CorruptRecordError

_PREFIX = struct.Struct(">II")
_FIXED = struct.Struct(">BQQQHII")
_U32 = struct.Struct(">I")
_U64 = struct.Struct(">Q")

# length + crc + fixed fields + key_len + value_len
_BASE_SIZE = _PREFIX.size + _FIXED.size + 2 * _U32.size


@dataclass
class RecordHeader:
    """A key/value header attached to a record."""

    key: str
    value: bytes


@dataclass
class Record:
    """One entry in a partition log."""

    offset: int
    timestamp_ms: int
    key: bytes = b""
    value: bytes = b""
    headers: list[RecordHeader] = field(default_factory=list)
    producer_id: int = 0
    producer_epoch: int = 0
    sequence_number: int = 0
    is_transactional: bool = False
    is_control: bool = False

    def _headers_size(self) -> int:
        return sum(
            2 * _U32.size + len(h.key.encode("utf-8")) + len(h.value)
            for h in self.headers
        )

    def encoded_size(self) -> int:
        """Total on-disk size, including the length prefix."""
        return _BASE_SIZE + self._headers_size() + len(self.key) + len(self.value)

    def encode(self) -> bytes:
        """Return the record in its on-disk form."""
        attributes = int(self.is_control) | (int(self.is_transactional) << 1)
        parts = [
            _FIXED.pack(
                attributes,
                self.offset,
                self.timestamp_ms,
                self.producer_id,
                self.producer_epoch,
                self.sequence_number,
                len(self.headers),
            )
        ]
        for header in self.headers:
            header_key = header.key.encode("utf-8")
            parts += [
                _U32.pack(len(header_key)),
                header_key,
                _U32.pack(len(header.value)),
                bytes(header.value),
            ]
        parts += [
            _U32.pack(len(self.key)),
            bytes(self.key),
            _U32.pack(len(self.value)),
            bytes(self.value),
        ]
        body = b"".join(parts)
        crc = zlib.crc32(body)
        return _PREFIX.pack(len(body) + _U32.size, crc) + body

    @classmethod
    def decode(cls, reader: BinaryIO) -> Record | None:
        """Read one record from a binary stream.

        Returns None on end of stream at a record boundary. Raises
        CorruptRecordError on a checksum mismatch and EOFError when the
        stream ends inside a record.
        """
        length_bytes = _read_exact(reader, _U32.size)
        if len(length_bytes) < _U32.size:
            return None
        (payload_len,) = _U32.unpack(length_bytes)
        payload = _read_exact(reader, payload_len)
        if len(payload) < payload_len:
            raise EOFError(
                f"record truncated: expected {payload_len} bytes, got {len(payload)}"
            )
        if payload_len < _U32.size:
            raise CorruptRecordError(0)

        (crc_stored,) = _U32.unpack_from(payload, 0)
        crc_data = payload[_U32.size:]
        if zlib.crc32(crc_data) != crc_stored:
            offset = _U64.unpack_from(crc_data, 1)[0] if len(crc_data) >= 9 else 0
            raise CorruptRecordError(offset)
        if len(crc_data) < _FIXED.size:
            raise CorruptRecordError(0)

        (
            attributes,
            offset,
            timestamp_ms,
            producer_id,
            producer_epoch,
            sequence_number,
            header_count,
        ) = _FIXED.unpack_from(crc_data, 0)
        pos = _FIXED.size

        def take(n: int) -> bytes:
            nonlocal pos
            chunk = crc_data[pos : pos + n]
            if len(chunk) < n:
                raise CorruptRecordError(offset)
            pos += n
            return chunk

        def take_sized() -> bytes:
            (size,) = _U32.unpack(take(_U32.size))
            return take(size)

        headers = []
        for _ in range(header_count):
            header_key = take_sized().decode("utf-8", errors="replace")
            headers.append(RecordHeader(key=header_key, value=take_sized()))
        key = take_sized()
        value = take_sized()

        return cls(
            offset=offset,
            timestamp_ms=timestamp_ms,
            key=key,
            value=value,
            headers=headers,
            producer_id=producer_id,
            producer_epoch=producer_epoch,
            sequence_number=sequence_number,
            is_transactional=bool(attributes & 2),
            is_control=bool(attributes & 1),
        )

    def write_to(self, writer: BinaryIO) -> None:
        """Write the encoded record to a binary stream."""
        writer.write(self.encode())


def _read_exact(reader: BinaryIO, size: int) -> bytes:
    """Read up to ``size`` bytes, stopping early only at end of stream."""
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = reader.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)