"""devrun: run one mobile UI test on an exclusively locked device."""

__version__ = "0.1.0"
