"""Main entry point for photo-discovery web server."""

import sys

import uvicorn

from .api import create_app
from .config import get_default_config


def main():
    """Run the web server."""
    config = get_default_config()
    print("Starting photo-discovery web server...")
    print(f"API documentation: http://localhost:{config.port}/docs")
    if config.collection_path:
        print(f"Collection: {config.collection_path}")
    else:
        print("\nNo collection configured. Set PHOTO_DISCOVERY_COLLECTION or POST records to /api/index")
    print("\nPress Ctrl+C to stop the server")

    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level="info",
        reload=False
    )


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nServer stopped by user")
        sys.exit(0)
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
