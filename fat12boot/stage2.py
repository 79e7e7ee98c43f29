"""The second boot stage: mount the boot volume, list it and show test.txt."""

from __future__ import annotations

import sys
from collections.abc import Sequence
from typing import TextIO

from .disk import Disk, DiskError
from .filesystem import FatError, FatFileSystem

ROOT_LISTING_LIMIT = 5
READ_CHUNK = 100
GREETING_FILE = "test.txt"


def boot(disk: Disk, out: TextIO) -> bool:
    """Run the boot stage on ``disk``, writing console output to ``out``.

    Returns False when the file system could not be initialised.
    """
    try:
        fs = FatFileSystem(disk)
    except FatError:
        out.write("FAT init error\r\n")
        return False

    root = fs.open("/")
    listed = 0
    try:
        while (entry := root.read_entry()) is not None and listed < ROOT_LISTING_LIMIT:
            listed += 1
            out.write("  " + entry.name.decode("latin-1") + "\r\n")
    except FatError:
        out.write("FAT: read error!\r\n")
    root.close()

    try:
        file = fs.open(GREETING_FILE)
    except FatError as exc:
        out.write(f"FAT: {exc}\r\n")
        return True

    with file:
        try:
            while chunk := file.read(READ_CHUNK):
                out.write(chunk.decode("latin-1").replace("\n", "\r\n"))
        except FatError:
            out.write("FAT: read error!\r\n")
    return True


def main(argv: Sequence[str] | None = None) -> int:
    """Boot from the image given as the first argument, optionally with a drive number."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("Syntax: stage2 <disk image> [drive number]", file=sys.stderr)
        return 2

    out = sys.stdout
    try:
        drive = int(args[1], 0) if len(args) > 1 else 0
        stream = open(args[0], "rb")
    except (OSError, ValueError):
        out.write("Disk init error\r\n")
        return 1

    with stream:
        try:
            disk = Disk.initialize(stream, drive)
        except (DiskError, ValueError):
            out.write("Disk init error\r\n")
            return 1
        return 0 if boot(disk, out) else 1