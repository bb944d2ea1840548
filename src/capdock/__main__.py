"""``python -m capdock`` runs the command-line interface."""

from capdock.cli.main import main


if __name__ == "__main__":
    main()
