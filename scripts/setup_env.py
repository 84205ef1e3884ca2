#!/usr/bin/env python3
"""Idempotent environment initializer.

Creates `.env` from `.env.example` when it does not exist yet; an existing
`.env` is never overwritten.

Usage:
  python scripts/setup_env.py [project_dir]
"""
from __future__ import annotations
import sys, shutil, pathlib


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    root = pathlib.Path(argv[0]) if argv else pathlib.Path(__file__).resolve().parents[1]
    env_path = root / '.env'
    example = root / '.env.example'
    if env_path.exists():
        print(f".env already exists, skipping: {env_path}")
        return 0
    if not example.exists():
        print(f"missing template: {example}", file=sys.stderr)
        return 2
    shutil.copyfile(example, env_path)
    print(f"created: {env_path}")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
