from __future__ import annotations
import os
import uvicorn

def main():
    mode = os.environ.get("CAREO_RUN_MODE", "api").lower()
    if mode == "migrate":
        from careo.scripts.migrate_and_seed import main as migrate
        migrate()
    elif mode == "worker":
        from careo.worker import main as worker
        worker()
    else:
        from careo.app import app
        uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get('PORT', '8080')))

if __name__ == "__main__":
    main()
