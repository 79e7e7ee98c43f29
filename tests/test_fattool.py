import io
import struct

import pytest

from fat12boot.fattool import main, read_image_file, render_bytes
from fat12boot.filesystem import FatError

BOOT = struct.Struct("<3s8sHBHBHHBHHHIIBBBI11s8s")
ENTRY = struct.Struct("<11sBBBHHHHHHHI")


def set_fat(fat, cluster, value):
    index = cluster * 3 // 2
    if cluster % 2 == 0:
        fat[index] = value & 0xFF
        fat[index + 1] = (fat[index + 1] & 0xF0) | ((value >> 8) & 0x0F)
    else:
        fat[index] = (fat[index] & 0x0F) | ((value << 4) & 0xF0)
        fat[index + 1] = (value >> 4) & 0xFF


def make_image(files):
    image = bytearray(2880 * 512)
    BOOT.pack_into(
        image, 0, b"\xeb\x3c\x90", b"MSWIN4.1", 512, 1, 1, 2, 224, 2880, 0xF0,
        9, 18, 2, 0, 0, 0, 0, 0x29, 0x12345678, b"NBOS       ", b"FAT12   ",
    )
    fat = bytearray(9 * 512)
    set_fat(fat, 0, 0xFF0)
    set_fat(fat, 1, 0xFFF)
    cluster = 2
    for index, (name, content) in enumerate(files):
        count = max(1, -(-len(content) // 512))
        first = cluster
        for k in range(count):
            set_fat(fat, cluster + k, cluster + k + 1 if k < count - 1 else 0xFFF)
            offset = (33 + cluster + k - 2) * 512
            chunk = content[k * 512 : (k + 1) * 512]
            image[offset : offset + len(chunk)] = chunk
        entry = ENTRY.pack(name, 0x20, 0, 0, 0, 0, 0, 0, 0, 0, first, len(content))
        image[19 * 512 + index * 32 : 19 * 512 + (index + 1) * 32] = entry
        cluster += count
    image[512 : 512 + len(fat)] = fat
    image[10 * 512 : 10 * 512 + len(fat)] = fat
    return bytes(image)


def test_reads_single_cluster_file():
    image = make_image([(b"TEST    TXT", b"hello world")])
    assert read_image_file(io.BytesIO(image), "TEST    TXT") == b"hello world"


def test_reads_multi_cluster_file():
    content = bytes(range(256)) * 6
    image = make_image([(b"A       TXT", b"x"), (b"BIG     BIN", content)])
    assert read_image_file(io.BytesIO(image), b"BIG     BIN") == content


def test_name_must_match_exactly():
    image = make_image([(b"TEST    TXT", b"data")])
    with pytest.raises(FatError, match="Could not find file test.txt!"):
        read_image_file(io.BytesIO(image), "test.txt")


def test_truncated_image_fails_on_boot_sector():
    with pytest.raises(FatError, match="Could not read boot sector!"):
        read_image_file(io.BytesIO(b"\0" * 20), "TEST    TXT")


def test_image_without_fat_fails():
    image = make_image([(b"TEST    TXT", b"data")])[:600]
    with pytest.raises(FatError, match="Could not read FAT!"):
        read_image_file(io.BytesIO(image), "TEST    TXT")


def test_render_bytes_escapes_unprintable():
    assert render_bytes(b"Hi\n\x00~") == "Hi<0a><00>~"


def test_render_bytes_keeps_printable_text():
    text = b"Plain text, 123!"
    assert render_bytes(text) == text.decode()


def test_main_prints_file(tmp_path, capsys):
    path = tmp_path / "floppy.img"
    path.write_bytes(make_image([(b"TEST    TXT", b"line\n")]))
    assert main([str(path), "TEST    TXT"]) == 0
    assert capsys.readouterr().out == "line<0a>\n"


def test_main_without_arguments(capsys):
    assert main([]) == -1
    assert "Syntax:" in capsys.readouterr().out


def test_main_missing_image(tmp_path, capsys):
    missing = tmp_path / "none.img"
    assert main([str(missing), "TEST    TXT"]) == -1
    assert f"Cannot open disk image {missing}!" in capsys.readouterr().err


def test_main_missing_file(tmp_path, capsys):
    path = tmp_path / "floppy.img"
    path.write_bytes(make_image([(b"TEST    TXT", b"x")]))
    assert main([str(path), "OTHER   TXT"]) == -5
    assert "Could not find file OTHER   TXT!" in capsys.readouterr().err