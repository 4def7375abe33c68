"""Allow `python -m devstack_cli` (used when re-running through sudo)."""

from .main import main

if __name__ == "__main__":
    main()
