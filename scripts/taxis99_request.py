#!/usr/bin/env python
"""Send a single request to the 99 Taxis API and print the JSON response.

Examples:
  python scripts/taxis99_request.py GET employees
  python scripts/taxis99_request.py POST rides --data '{"employee_id": "42"}' --out data/ride.json
  python scripts/taxis99_request.py GET rides --raw --timeout 5 --verbose

Environment (a local .env is loaded if present):
  TAXIS99_BASE_URL  API base URL (optional)
  TAXIS99_TIMEOUT   default timeout in seconds (optional)
"""
from __future__ import annotations
import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, List, Optional

from taxis99 import (
    APIError,
    ApiConfigError,
    ApiConstructionError,
    ApiTransportError,
    Client,
    RequestContext,
)

logger = logging.getLogger('taxis99.cli')

EXIT_USAGE = 1
EXIT_TRANSPORT = 2
EXIT_DECODE = 3


def load_env_file(env_path: Path) -> None:
    """Export KEY=VALUE lines (TAXIS99_BASE_URL, TAXIS99_TIMEOUT) unless already set."""
    if not env_path.exists():
        return
    try:
        lines = env_path.read_text(encoding='utf-8').splitlines()
    except OSError as e:
        logger.warning(f"Could not read {env_path}: {e}")
        return
    for line in lines:
        line = line.strip()
        if not line or line.startswith('#') or '=' not in line:
            continue
        k, v = line.split('=', 1)
        k = k.strip(); v = v.strip().strip('"').strip("'")
        if not k:
            continue
        existing = os.environ.get(k)
        if existing is None or existing.strip() == '':
            os.environ[k] = v


def parse_args(argv: Optional[List[str]] = None):
    p = argparse.ArgumentParser(description='Send a request to the 99 Taxis API')
    p.add_argument('method', help='HTTP method, e.g. GET or POST')
    p.add_argument('path', help='Path relative to the base URL, e.g. rides')
    body = p.add_mutually_exclusive_group()
    body.add_argument('--data', help='JSON request body')
    body.add_argument('--data-file', help='File holding the JSON request body')
    p.add_argument('--base-url', help='Override TAXIS99_BASE_URL')
    p.add_argument('--timeout', type=float, help='Deadline for the request in seconds')
    p.add_argument('--raw', action='store_true', help='Print status and body without decoding')
    p.add_argument('--out', help='Write the decoded JSON to this file')
    p.add_argument('--verbose', action='store_true')
    return p.parse_args(argv)


def _load_body(args) -> Any:
    text = None
    if args.data is not None:
        text = args.data
    elif args.data_file:
        text = Path(args.data_file).read_text(encoding='utf-8')
    if text is None:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise SystemExit(f'[error] request body is not valid JSON: {e}')


def run(args) -> int:
    body = _load_body(args)
    try:
        client = Client.from_env()
        if args.base_url:
            client = Client(session=client.session, base_url=args.base_url, timeout=client.timeout)
        ctx = RequestContext(timeout=args.timeout)
        if args.raw:
            resp = client.request(args.method, args.path, body, ctx=ctx)
            with resp:
                print(resp.status_code)
                print(resp.text)
            return 0
        data = client.request(args.method, args.path, body, out=object, ctx=ctx)
    except (ApiConstructionError, ApiConfigError) as e:
        print(f'[error] construction: {e}', file=sys.stderr)
        return EXIT_USAGE
    except ApiTransportError as e:
        print(f'[error] transport: {e}', file=sys.stderr)
        return EXIT_TRANSPORT
    except APIError as e:
        print(f'[error] decode: {e}', file=sys.stderr)
        return EXIT_DECODE

    text = json.dumps(data, ensure_ascii=False, indent=2)
    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text, encoding='utf-8')
        logger.info(f'Wrote {out_path}')
    else:
        print(text)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format='[%(levelname)s] %(message)s')
    load_env_file(Path('.env'))
    return run(args)

if __name__ == '__main__':
    sys.exit(main())
