"""Configuration module for imgconv."""

from imgconv.config.settings import ImgconvSettings, get_settings, reload_settings

__all__ = ["ImgconvSettings", "get_settings", "reload_settings"]
