from __future__ import annotations

from postdown.cli import main

raise SystemExit(main())
