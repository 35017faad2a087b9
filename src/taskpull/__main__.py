"""Allow `python -m taskpull` to run the demo."""

import asyncio
import sys

from taskpull.main import main

sys.exit(asyncio.run(main()))
