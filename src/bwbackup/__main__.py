"""Allow ``python -m bwbackup`` to run a backup."""

from .cli import main

if __name__ == "__main__":
    main()
