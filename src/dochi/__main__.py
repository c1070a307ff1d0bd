"""Allow ``python -m dochi``."""

from .cli import main

main()
