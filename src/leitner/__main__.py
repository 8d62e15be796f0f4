"""
Entry point for running the Leitner CLI as a module.

Usage:
    python -m src.leitner due --catalog items.json
    python -m src.leitner stats --catalog items.json
    python -m src.leitner --help
"""
from .cli import main

if __name__ == "__main__":
    main()
