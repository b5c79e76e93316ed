"""Entry point for the pagebuild CLI.

Allows running the tool as ``python -m pagebuild``.
"""

from .cli import main

if __name__ == "__main__":  # pragma: no cover
    main()
