"""setconf - statement codec and transactional apply engine for set-style
device configuration."""

__version__ = "0.1.0"
