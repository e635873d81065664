#!/usr/bin/env python3
"""Push a generated report to a DingTalk group robot.

Usage:
  DINGTALK_WEBHOOK=... python gitlog_backend/scripts/push_dingtalk.py
  python gitlog_backend/scripts/push_dingtalk.py --report-file dist/report-weekly.md --title "Weekly"
"""
from __future__ import annotations

import argparse
import base64
import hashlib
import hmac
import os
import sys
import time
from pathlib import Path
from typing import Optional

import requests

DEFAULT_REPORT_FILE = "dist/report-weekly.md"


def sign_params(secret: str, timestamp_ms: Optional[int] = None) -> dict[str, str]:
    """Return the ``timestamp``/``sign`` query params for a signed robot webhook."""
    timestamp = str(timestamp_ms if timestamp_ms is not None else int(time.time() * 1000))
    string_to_sign = f"{timestamp}\n{secret}"
    digest = hmac.new(secret.encode("utf-8"), string_to_sign.encode("utf-8"), hashlib.sha256).digest()
    return {"timestamp": timestamp, "sign": base64.b64encode(digest).decode("ascii")}


def build_message(title: str, report: str) -> dict:
    text = f"## {title}\n\n{report}" if title else report
    return {"msgtype": "markdown", "markdown": {"title": title or "Automated Report", "text": text}}


def send_markdown(webhook: str, secret: Optional[str], title: str, report: str, timeout: int = 15) -> None:
    params = sign_params(secret) if secret else None
    response = requests.post(webhook, params=params, json=build_message(title, report), timeout=timeout)
    if not response.ok:
        raise RuntimeError(f"DingTalk request failed: {response.status_code} {response.text}")
    data = response.json()
    if data.get("errcode", 0) != 0:
        raise RuntimeError(f"DingTalk rejected the message: {data.get('errmsg', 'unknown error')}")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Push a report file to a DingTalk robot")
    parser.add_argument("--webhook", default=os.getenv("DINGTALK_WEBHOOK", ""))
    parser.add_argument("--secret", default=os.getenv("DINGTALK_SECRET", ""))
    parser.add_argument("--report-file", default=os.getenv("REPORT_FILE", DEFAULT_REPORT_FILE))
    parser.add_argument("--title", default=os.getenv("REPORT_TITLE", ""))
    args = parser.parse_args(argv)

    if not args.webhook:
        print("DINGTALK_WEBHOOK is not set", file=sys.stderr)
        return 1
    try:
        report = Path(args.report_file).read_text(encoding="utf-8")
    except OSError as e:
        print(f"Failed to read report file {args.report_file}: {e}", file=sys.stderr)
        return 1

    print("Sending report through DingTalk robot...")
    try:
        send_markdown(args.webhook, args.secret or None, args.title, report)
    except (requests.RequestException, RuntimeError, ValueError) as e:
        print(f"DingTalk push failed: {e}", file=sys.stderr)
        return 1
    print("DingTalk push succeeded")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
