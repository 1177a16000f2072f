"""
Entry point for running Activation Evolver as a module.

Usage:
    python -m activation_evolver [options]      Run a headless evolution
    python -m activation_evolver.web.app        Start the JSON API server
"""

import sys

from .cli import main


if __name__ == '__main__':
    sys.exit(main())
