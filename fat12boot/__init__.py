"""Read files from FAT12 floppy disk images, as a small bootloader does."""

__version__ = "0.1.0"
__all__ = ["disk", "formatting", "filesystem", "fattool", "stage2"]