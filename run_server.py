#!/usr/bin/env python3
"""Run the scoped-sqlite host server."""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from scopedsql.config import get_server_config


def main():
    import uvicorn

    cfg = get_server_config()
    print(f"scoped-sqlite server on http://{cfg.host}:{cfg.port} (reload={cfg.reload})")

    uvicorn.run(
        "server.app:app",
        host=cfg.host,
        port=cfg.port,
        reload=cfg.reload,
    )


if __name__ == "__main__":
    main()
