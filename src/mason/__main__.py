"""Allow running mason as `python -m mason`."""

from mason.cli import main

main()
