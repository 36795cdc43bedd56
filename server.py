"""
Knowledger - knowledge entry CRUD and search API
FastAPI server with PostgreSQL + pgvector backend
"""

import sys

import uvicorn

import core.config as config


if __name__ == "__main__":
    try:
        config.validate_and_prepare_config()
    except RuntimeError as exc:
        config.logger.error(str(exc))
        sys.exit(1)

    from app.main import app

    print(f"🚀 Knowledger API server starting on port {config.API_PORT}")
    print(f"📊 Health check: http://localhost:{config.API_PORT}/health")
    uvicorn.run(app, host=config.API_HOST, port=config.API_PORT)
