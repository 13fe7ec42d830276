#!/usr/bin/env python3
"""Run the sharegate API with settings from the environment."""
from __future__ import annotations

import argparse

import uvicorn

from sharegate.app import ShareGateSettings, create_app


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser()
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    app = create_app(ShareGateSettings.from_env())
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
