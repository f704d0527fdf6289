"""archyra — graph state core for the cloud architecture designer."""

__version__ = "0.1.0"
