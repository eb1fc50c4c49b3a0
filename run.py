#!/usr/bin/env python3
"""Запуск pushr без установки пакета; то же делает `pushr serve`."""
import argparse
import uvicorn

from pushr.config import DEFAULT_CONFIG_NAME, load_config
from pushr.main import create_app


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="pushr server")
    parser.add_argument("--config", default=DEFAULT_CONFIG_NAME)
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8009)
    args = parser.parse_args()

    uvicorn.run(create_app(load_config(args.config)), host=args.host, port=args.port, log_level="info")
