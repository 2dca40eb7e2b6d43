"""Allow ``python -m halte``."""

from halte.cli.main import main

raise SystemExit(main())
