"""Entry point for python -m terminus."""

from terminus.cli import app

if __name__ == "__main__":
    app()
