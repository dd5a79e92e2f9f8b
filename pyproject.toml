[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sunxiboot"
version = "0.1.0"
description = "Allwinner (sunxi) boot helpers: eGON boot header reports, NAND MBR tables, SPL checks, FEL ARM code snippets and SPI batch execution"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "allwinner",
    "sunxi",
    "fel",
    "spl",
    "boot0",
    "egon",
    "nand",
    "spi",
    "embedded",
]
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
    "Topic :: Software Development :: Embedded Systems",
    "Topic :: System :: Boot",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
sunxiboot-bootinfo = "sunxiboot.bootinfo:main"

[tool.hatch.build.targets.wheel]
packages = ["sunxiboot"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
