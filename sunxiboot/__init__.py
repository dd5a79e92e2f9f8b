"""Allwinner (sunxi) boot helpers: boot header reports, NAND MBR tables, SPL checks, FEL ARM code and SPI batches."""

__version__ = "0.1.0"