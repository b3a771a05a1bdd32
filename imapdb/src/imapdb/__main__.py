"""Allow ``python -m imapdb``."""

from .cli import main

if __name__ == "__main__":
    main()
