"""Main CLI entry point for the content library."""

from __future__ import annotations

from content_library.cli.commands import libraries, library

app = library.app

# Subcommands
app.add_typer(
    libraries.app,
    name="libraries",
    help="Author libraries from your own content and push them to organizations",
)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
