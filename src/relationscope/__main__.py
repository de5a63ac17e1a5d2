"""Allow ``python -m relationscope``."""

from relationscope.cli.main import main

if __name__ == "__main__":
    main()
