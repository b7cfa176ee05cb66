import sys

from agentic_orchestrator.cli import main

sys.exit(main())
