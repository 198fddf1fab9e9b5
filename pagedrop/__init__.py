"""PageDrop — publish chat-submitted HTML as addressable posts."""

__version__ = "0.1.0"
