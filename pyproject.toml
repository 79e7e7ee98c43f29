[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fat12boot"
version = "0.1.0"
description = "Read files from FAT12 floppy disk images, the way a small bootloader does"
requires-python = ">=3.10"
dependencies = []
keywords = ["fat12", "fat", "floppy", "disk image", "bootloader", "filesystem"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
fat12-cat = "fat12boot.fattool:main"
fat12-stage2 = "fat12boot.stage2:main"

[tool.hatch.build.targets.wheel]
packages = ["fat12boot"]

[tool.pytest.ini_options]
addopts = "-ra"
