"""Entry point for running Scribe with ``python -m scribe``."""

from .cli import main

if __name__ == "__main__":  # pragma: no cover
    main()
