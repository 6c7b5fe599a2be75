"""Allow ``python -m kiln``."""

from kiln._cli import main

main()
