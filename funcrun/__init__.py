from .version import __version__  # noqa
