# fat12boot

Read files from FAT12 floppy disk images. The package holds a small, read-only
FAT12 reader modelled on a second-stage bootloader. It reads the boot sector
and the allocation table, opens files and directories by path, and reads them
sector by sector through a `Disk` that addresses the image by
cylinder/head/sector geometry.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Command-line tools

### fat12-cat

Print a file from the root directory of an image:

```
fat12-cat floppy.img "TEST    TXT"
```

The name is compared byte for byte with the name stored on disk, so it must be
given in the 11-character FAT form (8 characters of name, 3 of extension,
upper case, space padded). Printable ASCII is shown as is; every other byte is
shown as `<xx>` in hexadecimal. On failure a message goes to standard error
("Could not read boot sector!", "Could not read FAT!", "Could not find file
...!", "Could not read file ...!") and the command exits with a non-zero
status.

### fat12-stage2

Run the boot stage on an image:

```
fat12-stage2 floppy.img [drive number]
```

It takes the disk geometry from the image's boot sector, mounts the volume,
lists up to five entries of the root directory (their raw 11-byte names) and
then prints the contents of `test.txt`, writing `\r\n` line endings as a boot
console would. The drive number defaults to 0 and may be written in any base
Python's `int(..., 0)` accepts. It prints "Disk init error" or "FAT init
error" and exits with status 1 when the disk or file system cannot be set up.

## Library use

```python
from fat12boot.disk import Disk
from fat12boot.filesystem import FatFileSystem

with open("floppy.img", "rb") as stream:
    disk = Disk.initialize(stream, 0)
    fs = FatFileSystem(disk)

    root = fs.open("/")
    while (entry := root.read_entry()) is not None:
        print(entry.name)
    root.close()

    with fs.open("test.txt") as handle:
        data = handle.read(handle.size)
```

### `fat12boot.disk`

- `Disk.initialize(stream, drive_number)` builds a `Disk` from the geometry in
  the image's boot sector (sectors per track, heads, total sectors).
- `Disk.lba_to_chs(lba)` returns `(cylinder, sector, head)`, with sectors
  numbered from 1.
- `Disk.read_sectors(lba, count)` reads whole 512-byte sectors, trying each
  read up to three times before raising `DiskError`.

### `fat12boot.filesystem`

- `FatFileSystem(disk)` mounts a volume and exposes `boot_sector`, `fat`,
  `root` and `data_section_lba`.
- `FatFileSystem.open(path)` opens a file or directory; a leading `/` is
  optional and `"/"` gives the root directory. Path components are matched in
  8.3 form. At most ten files may be open at once.
- `FatFile.read(byte_count)`, `FatFile.read_entry()` and `FatFile.close()`;
  `FatFile` is also a context manager. Closing the root directory rewinds it.
- `FatFileSystem.next_cluster(cluster)` follows a FAT12 chain and
  `FatFileSystem.cluster_to_lba(cluster)` maps a cluster to its first sector.
- `BootSector.parse(data)` and `DirectoryEntry.parse(data)` decode the
  on-disk structures; `FatAttributes` holds the attribute bits.
- `to_fat_name("test.txt")` gives `b"TEST    TXT"`.
- `align(number, align_to)` rounds up to a multiple of `align_to`; an
  alignment of 0 leaves the number unchanged.

### `fat12boot.fattool` and `fat12boot.stage2`

- `fattool.read_image_file(stream, name)` reads a root-directory file
  straight from an image stream, by its 11-byte FAT name.
- `fattool.render_bytes(data)` gives the `<xx>` rendering used by
  `fat12-cat`.
- `stage2.boot(disk, out)` runs the boot stage on a `Disk`, writing its
  console output to a text stream; it returns `False` if the file system
  could not be initialised.

### `fat12boot.formatting`

- `format_printf(fmt, *args)` formats with the bootloader console's small
  `printf` dialect: `%c %s %d %i %u %x %X %p %o %%`, with `h`, `hh`, `l` and
  `ll` length modifiers. Plain and short integers are 16 bits wide, `l` is 32
  and `ll` is 64; hexadecimal digits are always lower case and unknown
  conversions are dropped.

Errors are raised as `fat12boot.disk.DiskError` and
`fat12boot.filesystem.FatError`.

## What it does not do

The package only reads. It cannot create, write or delete files, format an
image or build a bootable floppy. It understands FAT12 with 8.3 names only:
long file names are not decoded, and FAT16 and FAT32 volumes are not
supported.