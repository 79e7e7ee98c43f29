"""Read-only access to FAT12 volumes: boot sector, FAT chains and directories."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntFlag
from types import TracebackType

from .disk import SECTOR_SIZE, Disk, DiskError

MAX_PATH_SIZE = 256
MAX_FILE_HANDLES = 10
ROOT_DIRECTORY_HANDLE = -1
END_OF_CHAIN = 0xFF8
FAT_NAME_LENGTH = 11

# Size of the memory window the loader reserves for FAT state and tables.
MEMORY_FAT_SIZE = 0x10000

_BOOT_SECTOR = struct.Struct("<3s8sHBHBHHBHHHIIBBBI11s8s")
_DIRECTORY_ENTRY = struct.Struct("<11sBBBHHHHHHHI")
DIRECTORY_ENTRY_SIZE = _DIRECTORY_ENTRY.size

# Bookkeeping that shares the memory window with the FAT: the boot sector
# plus one sector buffer and handle record per open file and the root.
_FAT_DATA_SIZE = SECTOR_SIZE + (MAX_FILE_HANDLES + 1) * (SECTOR_SIZE + 16)


class FatError(Exception):
    """Raised when the volume cannot be read or a path cannot be opened."""


class FatAttributes(IntFlag):
    """Attribute bits of a directory entry."""

    READ_ONLY = 0x01
    HIDDEN = 0x02
    SYSTEM = 0x04
    VOLUME_ID = 0x08
    DIRECTORY = 0x10
    ARCHIVE = 0x20
    LFN = READ_ONLY | HIDDEN | SYSTEM | VOLUME_ID


@dataclass(frozen=True)
class BootSector:
    """The BIOS parameter block and extended boot record of a FAT volume."""

    boot_jump_instruction: bytes
    oem_identifier: bytes
    bytes_per_sector: int
    sectors_per_cluster: int
    reserved_sectors: int
    fat_count: int
    dir_entry_count: int
    total_sectors: int
    media_descriptor_type: int
    sectors_per_fat: int
    sectors_per_track: int
    heads: int
    hidden_sectors: int
    large_sector_count: int
    drive_number: int
    reserved: int
    signature: int
    volume_id: int
    volume_label: bytes
    system_id: bytes

    @classmethod
    def parse(cls, data: bytes) -> "BootSector":
        """Decode the boot sector fields from the start of ``data``."""
        if len(data) < _BOOT_SECTOR.size:
            raise FatError("boot sector is truncated")
        return cls(*_BOOT_SECTOR.unpack_from(data))


@dataclass(frozen=True)
class DirectoryEntry:
    """One 32-byte entry of a FAT directory."""

    name: bytes
    attributes: int
    reserved: int
    created_time_tenths: int
    created_time: int
    created_date: int
    accessed_date: int
    first_cluster_high: int
    modified_time: int
    modified_date: int
    first_cluster_low: int
    size: int

    @classmethod
    def parse(cls, data: bytes) -> "DirectoryEntry":
        """Decode a directory entry from the start of ``data``."""
        if len(data) < DIRECTORY_ENTRY_SIZE:
            raise FatError("directory entry is truncated")
        return cls(*_DIRECTORY_ENTRY.unpack_from(data))

    @property
    def first_cluster(self) -> int:
        return self.first_cluster_low | (self.first_cluster_high << 16)

    @property
    def is_directory(self) -> bool:
        return bool(self.attributes & FatAttributes.DIRECTORY)


def _to_upper(ch: str) -> str:
    return ch.upper() if "a" <= ch <= "z" else ch


def to_fat_name(name: str) -> bytes:
    """Convert ``name`` to the space-padded, upper-case 8.3 form stored on disk."""
    fat_name = [" "] * FAT_NAME_LENGTH
    dot = name.find(".")
    stem_end = dot if dot >= 0 else FAT_NAME_LENGTH
    for i, ch in enumerate(name[: min(8, stem_end)]):
        fat_name[i] = _to_upper(ch)
    if dot >= 0:
        for i, ch in enumerate(name[dot + 1 : dot + 4]):
            fat_name[8 + i] = _to_upper(ch)
    return "".join(fat_name).encode("latin-1")


def align(number: int, align_to: int) -> int:
    """Round ``number`` up to a multiple of ``align_to``; 0 leaves it unchanged."""
    if align_to == 0:
        return number
    rem = number % align_to
    return number + align_to - rem if rem > 0 else number


class FatFile:
    """An open file or directory on a FAT volume, read sector by sector."""

    def __init__(
        self,
        filesystem: "FatFileSystem",
        handle: int,
        is_directory: bool,
        size: int,
        first_cluster: int,
    ) -> None:
        self._fs = filesystem
        self.handle = handle
        self.is_directory = is_directory
        self.position = 0
        self.size = size
        self.first_cluster = first_cluster
        self.current_cluster = first_cluster
        self.sector_in_cluster = 0
        self.closed = False
        self._buffer = b""
        self._at_end = False
        self._pending_error: FatError | None = None

    @property
    def is_root(self) -> bool:
        return self.handle == ROOT_DIRECTORY_HANDLE

    def __enter__(self) -> "FatFile":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _load(self, lba: int) -> None:
        try:
            self._buffer = self._fs.disk.read_sectors(lba, 1)
        except (DiskError, ValueError) as exc:
            raise FatError(f"cannot read sector {lba}") from exc

    def _advance(self) -> bool:
        """Load the sector following the current one; False at the end."""
        if self.is_root:
            self.current_cluster += 1
            if self.current_cluster >= self._fs.data_section_lba:
                self._at_end = True
                return False
            lba = self.current_cluster
        else:
            self.sector_in_cluster += 1
            if self.sector_in_cluster >= self._fs.boot_sector.sectors_per_cluster:
                self.sector_in_cluster = 0
                self.current_cluster = self._fs.next_cluster(self.current_cluster)
            if self.current_cluster >= END_OF_CHAIN:
                self.size = self.position
                self._at_end = True
                return False
            lba = self._fs.cluster_to_lba(self.current_cluster) + self.sector_in_cluster
        try:
            self._load(lba)
        except FatError as exc:
            self._pending_error = exc
            self._at_end = True
            return False
        return True

    def read(self, byte_count: int) -> bytes:
        """Read up to ``byte_count`` bytes from the current position.

        Regular files stop at their size; directories stop where their
        cluster chain (or, for the root, the root directory area) ends.
        A failed sector read is raised by the read that follows it.
        """
        if self.closed:
            raise FatError("read from a closed file")
        if byte_count < 0:
            raise ValueError(f"negative byte count: {byte_count}")
        if self._pending_error is not None:
            error, self._pending_error = self._pending_error, None
            raise error
        if not self.is_directory:
            byte_count = min(byte_count, max(self.size - self.position, 0))

        out = bytearray()
        while byte_count > 0 and not self._at_end:
            offset = self.position % SECTOR_SIZE
            left_in_buffer = SECTOR_SIZE - offset
            take = min(byte_count, left_in_buffer)
            out += self._buffer[offset : offset + take]
            self.position += take
            byte_count -= take
            if take == left_in_buffer and not self._advance():
                break
        return bytes(out)

    def read_entry(self) -> DirectoryEntry | None:
        """Read the next directory entry, or None when none is left."""
        data = self.read(DIRECTORY_ENTRY_SIZE)
        if len(data) != DIRECTORY_ENTRY_SIZE:
            return None
        return DirectoryEntry.parse(data)

    def close(self) -> None:
        """Release the handle; the root directory is rewound instead."""
        if self.is_root:
            self.position = 0
            self.current_cluster = self.first_cluster
            self.sector_in_cluster = 0
            self._at_end = False
            self._pending_error = None
            self._load(self.first_cluster)
        elif not self.closed:
            self.closed = True
            self._fs._release(self.handle)


class FatFileSystem:
    """A mounted FAT12 volume on a :class:`Disk`."""

    def __init__(self, disk: Disk) -> None:
        self.disk = disk
        try:
            boot = disk.read_sectors(0, 1)
        except DiskError as exc:
            raise FatError("couldn't read boot sector") from exc
        self.boot_sector = bs = BootSector.parse(boot)
        if bs.bytes_per_sector == 0:
            raise FatError("boot sector reports zero bytes per sector")

        fat_size = bs.bytes_per_sector * bs.sectors_per_fat
        if _FAT_DATA_SIZE + fat_size >= MEMORY_FAT_SIZE:
            raise FatError("not enough memory to read FAT")
        try:
            self.fat = disk.read_sectors(bs.reserved_sectors, bs.sectors_per_fat)
        except (DiskError, ValueError) as exc:
            raise FatError("reading FAT failed") from exc

        dir_size = DIRECTORY_ENTRY_SIZE * bs.dir_entry_count
        dir_lba = bs.reserved_sectors + bs.sectors_per_fat * bs.fat_count
        root_dir_sectors = -(-dir_size // bs.bytes_per_sector)
        self.data_section_lba = dir_lba + root_dir_sectors

        self.root = FatFile(self, ROOT_DIRECTORY_HANDLE, True, dir_size, dir_lba)
        try:
            self.root._load(dir_lba)
        except FatError as exc:
            raise FatError("cannot read root directory") from exc

        self._open_files: list[FatFile | None] = [None] * MAX_FILE_HANDLES

    def cluster_to_lba(self, cluster: int) -> int:
        """Return the first sector of data cluster ``cluster``."""
        return self.data_section_lba + (cluster - 2) * self.boot_sector.sectors_per_cluster

    def next_cluster(self, cluster: int) -> int:
        """Return the FAT12 entry that follows ``cluster`` in its chain."""
        index = cluster * 3 // 2
        if cluster < 0 or index + 2 > len(self.fat):
            raise FatError(f"cluster {cluster} is outside the FAT")
        value = int.from_bytes(self.fat[index : index + 2], "little")
        return value & 0x0FFF if cluster % 2 == 0 else value >> 4

    def _release(self, handle: int) -> None:
        self._open_files[handle] = None

    def _open_entry(self, entry: DirectoryEntry) -> FatFile:
        free = [i for i, f in enumerate(self._open_files) if f is None]
        if not free:
            raise FatError("out of file handles")
        handle = free[-1]
        file = FatFile(self, handle, entry.is_directory, entry.size, entry.first_cluster)
        try:
            file._load(self.cluster_to_lba(file.first_cluster))
        except FatError as exc:
            raise FatError("cannot read first sector of entry") from exc
        self._open_files[handle] = file
        return file

    @staticmethod
    def _find(directory: FatFile, name: str) -> DirectoryEntry | None:
        target = to_fat_name(name)
        while (entry := directory.read_entry()) is not None:
            if entry.name == target:
                return entry
        return None

    def open(self, path: str) -> FatFile:
        """Open the file or directory at ``path``; "/" is the root directory."""
        if len(path) >= MAX_PATH_SIZE:
            raise FatError(f"path too long: {path}")
        rest = path[1:] if path.startswith("/") else path
        current = self.root

        while rest:
            name, separator, rest = rest.partition("/")
            is_last = not separator
            entry = self._find(current, name)
            current.close()
            if entry is None:
                raise FatError(f"{name} not found")
            if not is_last and not entry.is_directory:
                raise FatError(f"{name} not a directory")
            current = self._open_entry(entry)

        return current