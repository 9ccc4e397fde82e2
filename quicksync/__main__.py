"""Module entrypoint for ``python -m quicksync``.

All argument parsing and runtime setup happen in ``quicksync.cli``.
"""

from .cli import main


if __name__ == "__main__":
    main()
