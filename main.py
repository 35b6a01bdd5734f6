import sys

from bic.cli import main


if __name__ == "__main__":
    # No arguments: convert ./input -> ./output with the default settings.
    raise SystemExit(main(sys.argv[1:] or ["convert"]))
