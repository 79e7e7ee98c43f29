import io
import struct

import pytest

from fat12boot.disk import SECTOR_SIZE, Disk, DiskError

SPT = 18
HEADS = 2
TOTAL = 2880


def _sector(lba: int) -> bytes:
    return struct.pack("<I", lba) * (SECTOR_SIZE // 4)


def _image(total=TOTAL, spt=SPT, heads=HEADS) -> io.BytesIO:
    data = bytearray(b"".join(_sector(i) for i in range(total)))
    struct.pack_into("<H", data, 19, total)
    struct.pack_into("<H", data, 24, spt)
    struct.pack_into("<H", data, 26, heads)
    return io.BytesIO(bytes(data))


class FlakyStream(io.BytesIO):
    def __init__(self, data: bytes, failures: int):
        super().__init__(data)
        self.failures = failures
        self.attempts = 0

    def read(self, size=-1):
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise OSError("transient")
        return super().read(size)


def test_initialize_reads_geometry():
    disk = Disk.initialize(_image(), 0)
    assert (disk.id, disk.heads, disk.sectors) == (0, HEADS, SPT)
    assert disk.cylinders * disk.heads * disk.sectors == TOTAL


def test_initialize_uses_large_sector_count():
    data = bytearray(_image().getvalue())
    struct.pack_into("<H", data, 19, 0)
    struct.pack_into("<I", data, 32, TOTAL)
    disk = Disk.initialize(io.BytesIO(bytes(data)), 1)
    assert disk.cylinders * HEADS * SPT == TOTAL


def test_initialize_rejects_zero_geometry():
    with pytest.raises(DiskError):
        Disk.initialize(_image(spt=0), 0)


def test_initialize_rejects_short_image():
    with pytest.raises(DiskError):
        Disk.initialize(io.BytesIO(b"\x00" * 100), 0)


def test_initialize_rejects_bad_drive_number():
    with pytest.raises(ValueError):
        Disk.initialize(_image(), 256)


def test_lba_zero_is_first_sector():
    disk = Disk.initialize(_image(), 0)
    assert disk.lba_to_chs(0) == (0, 1, 0)


@pytest.mark.parametrize("lba", [0, 1, 17, 18, 35, 36, 19, 1000, TOTAL - 1])
def test_lba_to_chs_round_trip(lba):
    disk = Disk.initialize(_image(), 0)
    cylinder, sector, head = disk.lba_to_chs(lba)
    assert 1 <= sector <= SPT
    assert 0 <= head < HEADS
    assert (cylinder * HEADS + head) * SPT + sector - 1 == lba


def test_lba_to_chs_negative():
    disk = Disk.initialize(_image(), 0)
    with pytest.raises(ValueError):
        disk.lba_to_chs(-1)


def test_read_past_end_fails():
    disk = Disk.initialize(_image(), 0)
    with pytest.raises(DiskError):
        disk.read_sectors(TOTAL - 1, 2)


def test_read_beyond_last_cylinder_fails():
    disk = Disk.initialize(_image(), 0)
    with pytest.raises(DiskError):
        disk.read_sectors(TOTAL, 1)


def test_read_rejects_bad_count():
    disk = Disk.initialize(_image(), 0)
    with pytest.raises(ValueError):
        disk.read_sectors(0, 256)


def test_read_retries_transient_failures():
    stream = FlakyStream(_image().getvalue(), failures=2)
    disk = Disk(id=0, cylinders=80, heads=HEADS, sectors=SPT, stream=stream)
    assert disk.read_sectors(5, 1) == _sector(5)
    assert stream.attempts == 3


def test_read_gives_up_after_three_attempts():
    stream = FlakyStream(_image().getvalue(), failures=3)
    disk = Disk(id=0, cylinders=80, heads=HEADS, sectors=SPT, stream=stream)
    with pytest.raises(DiskError):
        disk.read_sectors(5, 1)
    assert stream.attempts == 3