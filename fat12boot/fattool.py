"""Print a file stored in the root directory of a FAT12 disk image."""

from __future__ import annotations

import sys
from collections.abc import Sequence
from typing import BinaryIO

from .filesystem import (
    DIRECTORY_ENTRY_SIZE,
    END_OF_CHAIN,
    FAT_NAME_LENGTH,
    BootSector,
    DirectoryEntry,
    FatError,
)

_PROG = "fattool"
_BOOT_SECTOR_SIZE = 62

EXIT_USAGE = -1
EXIT_BOOT_SECTOR = -2
EXIT_FAT = -3
EXIT_ROOT_DIRECTORY = -4
EXIT_FILE = -5


class _ToolError(FatError):
    """A failure carrying the exit status the command reports for it."""

    def __init__(self, message: str, exit_code: int) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class _ShortRead(Exception):
    pass


def _read_sectors(stream: BinaryIO, bs: BootSector, lba: int, count: int) -> bytes:
    wanted = bs.bytes_per_sector * count
    try:
        stream.seek(lba * bs.bytes_per_sector)
        data = stream.read(wanted)
    except (OSError, ValueError) as exc:
        raise _ShortRead from exc
    if len(data) != wanted:
        raise _ShortRead
    return data


def _next_cluster(fat: bytes, cluster: int) -> int:
    index = cluster * 3 // 2
    if cluster < 0 or index + 2 > len(fat):
        raise _ShortRead
    value = int.from_bytes(fat[index : index + 2], "little")
    return value & 0x0FFF if cluster % 2 == 0 else value >> 4


def _name_key(name: str | bytes) -> bytes:
    raw = name if isinstance(name, bytes) else name.encode("latin-1", errors="replace")
    return raw[:FAT_NAME_LENGTH].ljust(FAT_NAME_LENGTH, b"\0")


def read_image_file(stream: BinaryIO, name: str | bytes) -> bytes:
    """Return the contents of the root-directory file whose 11-byte FAT name is ``name``.

    The name is compared byte for byte with the name stored on disk, so it
    must already be in the padded upper-case form, e.g. ``"TEST    TXT"``.
    """
    try:
        stream.seek(0)
        bs = BootSector.parse(stream.read(_BOOT_SECTOR_SIZE))
    except (OSError, FatError) as exc:
        raise _ToolError("Could not read boot sector!", EXIT_BOOT_SECTOR) from exc
    if bs.bytes_per_sector == 0:
        raise _ToolError("Could not read boot sector!", EXIT_BOOT_SECTOR)

    try:
        fat = _read_sectors(stream, bs, bs.reserved_sectors, bs.sectors_per_fat)
    except _ShortRead as exc:
        raise _ToolError("Could not read FAT!", EXIT_FAT) from exc

    dir_lba = bs.reserved_sectors + bs.sectors_per_fat * bs.fat_count
    dir_size = DIRECTORY_ENTRY_SIZE * bs.dir_entry_count
    dir_sectors = -(-dir_size // bs.bytes_per_sector)
    root_end = dir_lba + dir_sectors
    try:
        root = _read_sectors(stream, bs, dir_lba, dir_sectors)
    except _ShortRead as exc:
        raise _ToolError("Could not read FAT!", EXIT_ROOT_DIRECTORY) from exc

    key = _name_key(name)
    shown = name.decode("latin-1") if isinstance(name, bytes) else name
    entry = next(
        (
            e
            for e in (
                DirectoryEntry.parse(root[offset : offset + DIRECTORY_ENTRY_SIZE])
                for offset in range(0, dir_size, DIRECTORY_ENTRY_SIZE)
            )
            if e.name == key
        ),
        None,
    )
    if entry is None:
        raise _ToolError(f"Could not find file {shown}!", EXIT_FILE)

    chunks: list[bytes] = []
    seen: set[int] = set()
    cluster = entry.first_cluster_low
    try:
        while True:
            if cluster in seen:
                raise _ShortRead
            seen.add(cluster)
            lba = root_end + (cluster - 2) * bs.sectors_per_cluster
            chunks.append(_read_sectors(stream, bs, lba, bs.sectors_per_cluster))
            cluster = _next_cluster(fat, cluster)
            if cluster >= END_OF_CHAIN:
                break
    except _ShortRead as exc:
        raise _ToolError(f"Could not read file {shown}!", EXIT_FILE) from exc

    return b"".join(chunks)[: entry.size]


def render_bytes(data: bytes) -> str:
    """Show printable ASCII as is and every other byte as ``<xx>`` in hex."""
    return "".join(chr(b) if 0x20 <= b <= 0x7E else f"<{b:02x}>" for b in data)


def main(argv: Sequence[str] | None = None) -> int:
    """Print a file from a disk image; returns the process exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) < 2:
        print(f"Syntax: {_PROG} <disk image> <file name>")
        return EXIT_USAGE

    image, name = args[0], args[1]
    try:
        stream = open(image, "rb")
    except OSError:
        print(f"Cannot open disk image {image}!", file=sys.stderr)
        return EXIT_USAGE

    with stream:
        try:
            data = read_image_file(stream, name)
        except _ToolError as exc:
            print(exc, file=sys.stderr)
            return exc.exit_code

    print(render_bytes(data))
    return 0