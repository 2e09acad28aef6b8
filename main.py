import argparse
import asyncio
import logging
import sys

import relay_server
from ui.cli import ChatCLI
from utils.config import load_settings
from utils.error_codes import ChatError


def server():
    parser = argparse.ArgumentParser(description="Run the anonymous chat relay.")
    parser.add_argument("--host", help="Interface to bind (default $HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Port to listen on (default $PORT or 3000)")
    parser.add_argument("--log-level", help="Logging level (default $CHAT_LOG_LEVEL or INFO)")
    args = parser.parse_args()

    try:
        settings = load_settings().override(host=args.host, port=args.port, log_level=args.log_level)
    except ChatError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        sys.exit(2)

    logging.basicConfig(level=settings.log_level.upper(), format='%(asctime)s - %(levelname)s - %(message)s')
    try:
        relay_server.main(settings)
    except KeyboardInterrupt:
        pass


def main():
    parser = argparse.ArgumentParser(description="Chat with a random stranger from the terminal.")
    parser.add_argument("--server", default="ws://localhost:3000", help="Relay websocket URI")
    parser.add_argument("--downloads", default="downloads", help="Where accepted media is saved")
    args = parser.parse_args()

    # Log lines would tear through the prompt; only surface problems
    logging.basicConfig(level=logging.WARNING, format='%(asctime)s - %(levelname)s - %(message)s')
    cli = ChatCLI(uri=args.server, download_dir=args.downloads)
    try:
        asyncio.run(cli.run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
