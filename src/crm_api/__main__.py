"""Module entrypoint for ``python -m crm_api`` CLI usage."""

from crm_api.cli import app as cli_app


def main() -> None:
    cli_app()


if __name__ == "__main__":
    main()
