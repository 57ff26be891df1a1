"""Capture-file helpers: durations, timestamped file names and merging pcaps."""

from __future__ import annotations

import logging
import os
import re
import struct
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from fractions import Fraction
from typing import BinaryIO

log = logging.getLogger(__name__)

MAGIC_MICROSECONDS = 0xA1B2C3D4
MAGIC_NANOSECONDS = 0xA1B23C4D
VERSION_MAJOR = 2
VERSION_MINOR = 4
SNAPSHOT_LENGTH = 65536
LINKTYPE_ETHERNET = 1

_FILE_HEADER = "IHHiIII"
_RECORD_HEADER = "IIII"
_FILE_HEADER_SIZE = struct.calcsize("<" + _FILE_HEADER)
_RECORD_HEADER_SIZE = struct.calcsize("<" + _RECORD_HEADER)

_UNIT_NANOSECONDS = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_MAX_NANOSECONDS = (1 << 63) - 1
_COMPONENT = re.compile(r"([0-9]*)(?:\.([0-9]*))?([^0-9.]*)")
_TIMESTAMP = re.compile(r"[0-9]{14}")


class PcapError(ValueError):
    """A duration, file name or capture file could not be understood."""


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``10m``, ``1h30m`` or ``-1.5s``."""
    rest = text
    negative = False
    if rest[:1] in ("+", "-"):
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise PcapError(f'time: invalid duration "{text}"')

    total = Fraction(0)
    while rest:
        match = _COMPONENT.match(rest)
        whole, fraction, unit = match.groups()
        if not whole and not fraction:
            raise PcapError(f'time: invalid duration "{text}"')
        if not unit:
            raise PcapError(f'time: missing unit in duration "{text}"')
        if unit not in _UNIT_NANOSECONDS:
            raise PcapError(f'time: unknown unit "{unit}" in duration "{text}"')
        number = Fraction(int(whole or "0"))
        if fraction:
            number += Fraction(int(fraction), 10 ** len(fraction))
        total += number * _UNIT_NANOSECONDS[unit]
        if total > _MAX_NANOSECONDS + (1 if negative else 0):
            raise PcapError(f'time: invalid duration "{text}"')
        rest = rest[match.end():]

    nanoseconds = int(total)
    microseconds = int(Fraction(nanoseconds, 1000))
    return timedelta(microseconds=-microseconds if negative else microseconds)


def file_timestamp(name: str) -> datetime:
    """The UTC time encoded in a ``...-YYYYMMDD-HHMMSS...`` capture file name."""
    parts = name.split("-")
    if len(parts) < 2:
        raise PcapError(f"invalid file name format: {name}")
    stamp = parts[-2] + parts[-1][:6]
    if not _TIMESTAMP.fullmatch(stamp):
        raise PcapError(f"unparsable timestamp in file name: {name}")
    try:
        parsed = datetime.strptime(stamp, "%Y%m%d%H%M%S")
    except ValueError as err:
        raise PcapError(f"unparsable timestamp in file name: {name}") from err
    return parsed.replace(tzinfo=timezone.utc)


def filter_files_by_cutoff(files: Iterable[str], cutoff: datetime | None) -> list[str]:
    """Keep the files whose name time is not before ``cutoff``.

    Without a cutoff every file is kept. Names without a usable timestamp are
    skipped. A naive cutoff is taken as local time.
    """
    if cutoff is None:
        return list(files)
    if cutoff.tzinfo is None:
        cutoff = cutoff.astimezone()
    kept = []
    for name in files:
        try:
            stamp = file_timestamp(name)
        except PcapError as err:
            log.warning("Skipping file: %s", err)
            continue
        if stamp < cutoff:
            continue
        kept.append(name)
    return kept


@dataclass(frozen=True)
class _Packet:
    seconds: int
    nanoseconds: int
    data: bytes
    length: int


class _PcapReader:
    """Reads the records of a classic pcap file, either byte order."""

    def __init__(self, handle: BinaryIO) -> None:
        self._handle = handle
        header = handle.read(_FILE_HEADER_SIZE)
        if len(header) < _FILE_HEADER_SIZE:
            raise PcapError("pcap file header is truncated")
        for endian in ("<", ">"):
            (magic,) = struct.unpack(endian + "I", header[:4])
            if magic in (MAGIC_MICROSECONDS, MAGIC_NANOSECONDS):
                break
        else:
            raise PcapError(f"unknown magic {header[:4].hex()}")
        self._endian = endian
        self._nano = magic == MAGIC_NANOSECONDS
        _, major, _, _, _, snaplen, link_type = struct.unpack(endian + _FILE_HEADER, header)
        if major != VERSION_MAJOR:
            raise PcapError(f"unknown major version {major}")
        self._snaplen = snaplen
        self.link_type = link_type

    def __iter__(self) -> Iterator[_Packet]:
        while True:
            raw = self._handle.read(_RECORD_HEADER_SIZE)
            if not raw:
                return
            if len(raw) < _RECORD_HEADER_SIZE:
                raise PcapError("packet header is truncated")
            seconds, fraction, captured, length = struct.unpack(
                self._endian + _RECORD_HEADER, raw
            )
            if self._snaplen and captured > self._snaplen:
                raise PcapError(
                    f"capture length exceeds snap length: {captured} > {self._snaplen}"
                )
            data = self._handle.read(captured)
            if len(data) < captured:
                raise PcapError("packet data is truncated")
            nanoseconds = fraction if self._nano else fraction * 1000
            yield _Packet(seconds, nanoseconds, data, length)


def merge_pcaps(output_file: str | os.PathLike[str], input_files: Iterable[str]) -> int:
    """Concatenate the packets of pcap files into one Ethernet pcap file.

    Inputs that cannot be opened or read are logged and skipped. Returns the
    number of packets written.
    """
    written = 0
    with open(output_file, "wb") as out:
        out.write(
            struct.pack(
                "<" + _FILE_HEADER,
                MAGIC_MICROSECONDS,
                VERSION_MAJOR,
                VERSION_MINOR,
                0,
                0,
                SNAPSHOT_LENGTH,
                LINKTYPE_ETHERNET,
            )
        )
        for input_file in input_files:
            log.info("Merging %s into %s", input_file, output_file)
            try:
                handle = open(input_file, "rb")
            except OSError as err:
                log.error("Failed to open %s: %s", input_file, err)
                continue
            with handle:
                try:
                    reader = _PcapReader(handle)
                except PcapError as err:
                    log.error("Failed to create pcap reader for %s: %s", input_file, err)
                    continue
                try:
                    for packet in reader:
                        out.write(
                            struct.pack(
                                "<" + _RECORD_HEADER,
                                packet.seconds,
                                packet.nanoseconds // 1000,
                                len(packet.data),
                                packet.length,
                            )
                        )
                        out.write(packet.data)
                        written += 1
                except PcapError as err:
                    log.error("Stopped reading %s: %s", input_file, err)
    return written