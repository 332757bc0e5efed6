#!/usr/bin/env python3
"""Unified entry point for Context Reminders.

Starts the REST API, the MCP server and the sweep worker as subprocesses
and stops all of them when any one exits or a shutdown signal arrives.
"""

import subprocess
import signal
import sys
import time
import logging
import os
from typing import Dict

from config import settings

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

SERVICES = {
    "api": "api_server.py",
    "mcp": "mcp_server.py",
    "worker": "background_worker.py",
}

processes: Dict[str, subprocess.Popen] = {}
shutdown_requested = False


def signal_handler(signum, frame):
    """Handle shutdown signals gracefully."""
    global shutdown_requested
    if shutdown_requested:
        logger.warning("Force shutdown requested")
        sys.exit(1)

    shutdown_requested = True
    logger.info(f"Received signal {signum}, initiating graceful shutdown...")
    shutdown_services()


def shutdown_services():
    """Stop all running services."""
    logger.info("Stopping all services...")
    for name, process in processes.items():
        if process.poll() is None:
            logger.info(f"Terminating {name} (PID: {process.pid})")
            process.terminate()

    for name, process in processes.items():
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            logger.warning(f"Force killing {name} (PID: {process.pid})")
            process.kill()
            process.wait()

    logger.info("All services stopped")
    sys.exit(0)


def start_service(name: str, script: str, cwd: str) -> subprocess.Popen:
    env = os.environ.copy()
    if name == "mcp":
        env['MCP_TRANSPORT'] = 'sse'

    logger.info(f"Starting {name} ({script})...")
    process = subprocess.Popen(
        [sys.executable, script],
        cwd=cwd,
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT
    )
    time.sleep(2)
    return process


def main():
    """Main entry point - start all services."""
    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    logger.info("=" * 60)
    logger.info("Context Reminders - Unified Startup")
    logger.info("=" * 60)

    current_dir = os.path.dirname(os.path.abspath(__file__))

    try:
        for name, script in SERVICES.items():
            processes[name] = start_service(name, script, current_dir)

        logger.info("=" * 60)
        logger.info("All services started")
        logger.info(f"  - API Server: http://{settings.API_HOST}:{settings.API_PORT}/docs")
        logger.info(f"  - MCP Server: http://{settings.MCP_HOST}:{settings.MCP_PORT}/sse")
        logger.info(f"  - Sweep Worker: every {settings.SWEEP_INTERVAL_SECONDS}s")
        logger.info("=" * 60)

        while not shutdown_requested:
            for name, process in processes.items():
                if process.poll() is not None:
                    logger.error(f"{name} (PID: {process.pid}) has stopped unexpectedly!")
                    shutdown_services()
            time.sleep(5)

    except Exception as e:
        logger.error(f"Error starting services: {e}")
        shutdown_services()


if __name__ == "__main__":
    main()
