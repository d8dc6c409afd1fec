"""Controller building blocks: formatting, logging, state machines, buttons, menus and a paired link protocol."""

__version__ = "0.1.0"