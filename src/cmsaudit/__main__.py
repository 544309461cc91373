"""Allow ``python -m cmsaudit``."""

from cmsaudit.cli import cli

if __name__ == "__main__":
    cli()
