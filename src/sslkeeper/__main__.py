"""Allow ``python -m sslkeeper``."""

from sslkeeper.cli.main import main

main()
