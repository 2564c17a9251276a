#!/usr/bin/env python3
"""
Run the MariaDB converter API locally with auto-reload.

PORT selects the listening port (default 8000); the remaining settings come from
config.json or the environment, see backend/app/config.py.
"""

import os
import sys
import uvicorn
from pathlib import Path

def main():
    project_root = Path(__file__).parent.resolve()
    if not (project_root / "backend" / "app" / "main.py").exists():
        sys.exit(f"backend/app/main.py not found under {project_root}")

    os.chdir(project_root)
    port = int(os.getenv("PORT", "8000"))
    print(f"MariaDB converter API on http://localhost:{port} (docs at /docs)")

    uvicorn.run(
        "backend.app.main:app",
        host="0.0.0.0",
        port=port,
        reload=True,
        reload_dirs=["backend/app"],
        log_level="info"
    )

if __name__ == "__main__":
    main()
