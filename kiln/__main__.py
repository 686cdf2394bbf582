"""Entry point for the Kiln CLI.

Allows running the build as ``python -m kiln``.
"""

from .cli import main

if __name__ == "__main__":  # pragma: no cover
    main()
