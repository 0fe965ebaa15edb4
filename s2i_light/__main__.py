"""Entry point for ``python -m s2i_light``."""

from s2i_light.cli import app

if __name__ == "__main__":
    app(prog_name="s2i")
