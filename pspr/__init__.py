"""Local project workspace manager: settings, disk image, editor and S3 sync."""

__version__ = '0.1.0'
