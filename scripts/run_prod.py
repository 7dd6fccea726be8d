#!/usr/bin/env python3
"""
Production server runner for the GraphQL query assistant.

No reload, at least two workers, no server/date headers. Each worker
process holds its own clients, schema cache and archive task set.
"""

import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
src_path = project_root / "src"
sys.path.insert(0, str(src_path))

from dotenv import load_dotenv

env_file = project_root / ".env"
if env_file.exists():
    load_dotenv(env_file)
    print(f"✓ Loaded environment variables from {env_file}")
else:
    print(f"⚠ No .env file found at {env_file}")
    print("  Ensure environment variables are set via your deployment system")

if __name__ == "__main__":
    import uvicorn
    from gql_assistant.config import get_settings

    settings = get_settings()
    server_config = settings.server
    workers = max(server_config.workers, 2)

    print("🚀 Starting GraphQL assistant production server...")
    print(f"⚙️  App: {server_config.app_module} on {server_config.host}:{server_config.port}")
    print(f"👥 Workers: {workers}")
    print(f"🛡  Mutations allowed: {settings.graphql.allow_mutations}")
    print()

    uvicorn.run(
        server_config.app_module,
        host=server_config.host,
        port=server_config.port,
        workers=workers,
        reload=False,
        log_config=None,
        access_log=False,
        server_header=False,
        date_header=False,
    )
