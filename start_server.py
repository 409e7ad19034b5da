"""
Server starter for the Faculty Feedback Portal.
Detects the local IP, picks a free port and serves the app with uvicorn.
"""

import os
import sys
import socket
import logging

import uvicorn

from app import create_asgi_app, setup_logging

logger = logging.getLogger(__name__)

PORTS_TO_TRY = [5000, 8080, 8000, 3000, 5001]


def get_local_ip():
    """Get the local IP address of the machine."""
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.connect(("8.8.8.8", 80))
        local_ip = s.getsockname()[0]
        s.close()
        return local_ip
    except OSError as e:
        logger.error(f"Error getting local IP: {e}")
        return "127.0.0.1"


def check_port_available(host, port):
    """Check if a port is available."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.bind((host, port))
        return True
    except OSError:
        return False
    finally:
        sock.close()


def select_port(host, ports=PORTS_TO_TRY):
    """First free port of ``ports`` on ``host``, or None."""
    for port in ports:
        if check_port_available(host, port):
            logger.info(f"Port {port} is available")
            return port
        logger.warning(f"Port {port} is already in use")
    return None


def start_server():
    """Start the portal with automatic host/port selection."""
    setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))
    logger.info("=" * 60)
    logger.info("Faculty Feedback Portal - Starting Server")
    logger.info("=" * 60)

    host_ip = os.environ.get('HOST') or get_local_ip()
    logger.info(f"Detected Local IP: {host_ip}")

    selected_port = select_port(host_ip)
    if not selected_port:
        logger.error("No available ports found. Please close other applications.")
        sys.exit(1)

    logger.info(f"Server will be accessible at:")
    logger.info(f"  Local:   http://localhost:{selected_port}/api")
    logger.info(f"  Network: http://{host_ip}:{selected_port}/api")
    logger.info("Press Ctrl+C to stop the server")

    try:
        uvicorn.run(
            create_asgi_app,
            factory=True,
            host=host_ip,
            port=selected_port,
            log_config=None
        )
    except KeyboardInterrupt:
        logger.info("Server stopped by user")


if __name__ == "__main__":
    start_server()
