#!/usr/bin/env python3
"""
Run the dbbasic-web server for the gateway API

Usage:
    python run_server.py

Then access:
    http://localhost:8001/gateways - List all gateways
    http://localhost:8001/gateways/{id} - Gateway info
"""
import uvicorn
from pathlib import Path

from object_gateway.config import get_config

# Set the base directory for dbbasic-web routing
import dbbasic_web.settings
dbbasic_web.settings.BASE_DIR = Path(__file__).parent

if __name__ == "__main__":
    config = get_config()

    print("=" * 60)
    print("Object Gateway REST API Server")
    print("=" * 60)
    print()
    print(f"Station {config.get('station_id')} on {config.get_url()}")
    print(f"Data directory: {config.base_dir}")
    print()
    print("Available endpoints:")
    print("  GET  /gateways - List all gateways")
    print("  GET  /gateways/{id} - Gateway info")
    print("  GET  /gateways/{id}?events=true - Notifications")
    print("  GET  /gateways/{id}?logs=true - Gateway log")
    print("  POST /gateways/{id} - Dispatch a call")
    print()
    print("Press Ctrl+C to stop")
    print("=" * 60)
    print()

    uvicorn.run(
        "dbbasic_web.asgi:app",
        host="0.0.0.0",
        port=config.get('port'),
        log_level="info",
    )
