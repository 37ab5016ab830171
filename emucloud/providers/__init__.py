"""Device driver implementations."""

from emucloud.providers.registry import create_driver

__all__ = ["create_driver"]
