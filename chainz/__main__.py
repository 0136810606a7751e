"""Allow ``python -m chainz``."""

from chainz.cli import main

main()
