#!/usr/bin/env python3
"""
Development server runner for the GraphQL query assistant.

Starts uvicorn with hot reload after loading .env from the project root.
Requires GRAPHQL__ENDPOINT_URL and LOOP__MAX_ATTEMPTS among others
(see Settings in gql_assistant/config.py).
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
    print("  Required settings must come from the environment")

if __name__ == "__main__":
    import uvicorn
    from gql_assistant.config import get_settings

    settings = get_settings()
    server_config = settings.server
    base_url = f"http://{server_config.host}:{server_config.port}"

    print("🚀 Starting GraphQL assistant development server...")
    print(f"🔗 GraphQL endpoint: {settings.graphql.endpoint_url}")
    print(f"🔁 Max attempts per question: {settings.loop.max_attempts}")
    print(f"📊 API Documentation: {base_url}/docs")
    print(f"🔍 Health Check: {base_url}/health")
    print()

    uvicorn.run(
        server_config.app_module,
        host=server_config.host,
        port=server_config.port,
        reload=server_config.reload,
        reload_dirs=[str(src_path)],
        log_config=None,  # Use our structured logging
        access_log=False,  # Request logging is done by middleware
    )
