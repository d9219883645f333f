"""ASGI entry point for running restgate via the uvicorn CLI.

Used by `restgate start --detach` to launch the server as a subprocess:
    python -m uvicorn restgate.server.asgi:app --host ... --port ...

The config file path is taken from RESTGATE_CONFIG when set.
"""

import os
from pathlib import Path

from restgate.config.loader import load_config
from restgate.server.app import create_app

_config_path = os.environ.get("RESTGATE_CONFIG")

config = load_config(Path(_config_path) if _config_path else None)
app = create_app(config)
