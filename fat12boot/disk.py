"""Sector-level access to a disk image addressed through CHS geometry."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import BinaryIO

SECTOR_SIZE = 512
READ_RETRIES = 3

# Offsets of the geometry fields inside a FAT boot sector.
_TOTAL_SECTORS = struct.Struct("<H")
_TOTAL_SECTORS_OFFSET = 19
_SECTORS_PER_TRACK_OFFSET = 24
_HEADS_OFFSET = 26
_LARGE_SECTOR_COUNT = struct.Struct("<I")
_LARGE_SECTOR_COUNT_OFFSET = 32


class DiskError(Exception):
    """Raised when the disk cannot be initialised or a read fails."""


@dataclass
class Disk:
    """A drive backed by a seekable binary stream, with its geometry."""

    id: int
    cylinders: int
    heads: int
    sectors: int
    stream: BinaryIO = field(repr=False, compare=False)

    def __post_init__(self) -> None:
        if not 0 <= self.id <= 0xFF:
            raise ValueError(f"drive number out of range: {self.id}")
        if self.cylinders <= 0 or self.heads <= 0 or self.sectors <= 0:
            raise ValueError("disk geometry must be positive")

    @classmethod
    def initialize(cls, stream: BinaryIO, drive_number: int) -> "Disk":
        """Query the drive geometry from the image's boot sector."""
        if not 0 <= drive_number <= 0xFF:
            raise ValueError(f"drive number out of range: {drive_number}")
        try:
            stream.seek(0)
            boot = stream.read(SECTOR_SIZE)
        except OSError as exc:
            raise DiskError(f"cannot read parameters of drive {drive_number}") from exc
        if len(boot) < SECTOR_SIZE:
            raise DiskError(f"cannot read parameters of drive {drive_number}")

        (sectors,) = _TOTAL_SECTORS.unpack_from(boot, _SECTORS_PER_TRACK_OFFSET)
        (heads,) = _TOTAL_SECTORS.unpack_from(boot, _HEADS_OFFSET)
        (total,) = _TOTAL_SECTORS.unpack_from(boot, _TOTAL_SECTORS_OFFSET)
        if total == 0:
            (total,) = _LARGE_SECTOR_COUNT.unpack_from(boot, _LARGE_SECTOR_COUNT_OFFSET)
        if sectors == 0 or heads == 0 or total == 0:
            raise DiskError(f"drive {drive_number} reports no usable geometry")

        per_cylinder = sectors * heads
        cylinders = -(-total // per_cylinder)
        return cls(
            id=drive_number,
            cylinders=cylinders,
            heads=heads,
            sectors=sectors,
            stream=stream,
        )

    def lba_to_chs(self, lba: int) -> tuple[int, int, int]:
        """Return (cylinder, sector, head) for a logical block address.

        Sectors are numbered from 1, cylinders and heads from 0.
        """
        if lba < 0:
            raise ValueError(f"negative LBA: {lba}")
        track, sector_index = divmod(lba, self.sectors)
        cylinder, head = divmod(track, self.heads)
        return cylinder, sector_index + 1, head

    def read_sectors(self, lba: int, count: int) -> bytes:
        """Read ``count`` sectors starting at ``lba``, retrying failed reads."""
        if not 0 <= count <= 0xFF:
            raise ValueError(f"sector count out of range: {count}")
        cylinder, sector, head = self.lba_to_chs(lba)
        last_error: Exception | None = None
        for _ in range(READ_RETRIES):
            try:
                return self._read_chs(cylinder, sector, head, count)
            except (OSError, DiskError) as exc:
                last_error = exc
        raise DiskError(
            f"reading {count} sector(s) at LBA {lba} from drive {self.id} failed"
        ) from last_error

    def _read_chs(self, cylinder: int, sector: int, head: int, count: int) -> bytes:
        if cylinder >= self.cylinders:
            raise DiskError(f"cylinder {cylinder} beyond end of disk")
        offset = ((cylinder * self.heads + head) * self.sectors + sector - 1) * SECTOR_SIZE
        self.stream.seek(offset)
        wanted = count * SECTOR_SIZE
        data = self.stream.read(wanted)
        if len(data) != wanted:
            raise DiskError("short read")
        return data