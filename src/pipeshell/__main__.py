"""Entry point for running pipeshell as a module.

This allows running: python -m pipeshell
"""

from .cli import main

if __name__ == "__main__":
    main()
