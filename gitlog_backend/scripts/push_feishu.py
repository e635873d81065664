#!/usr/bin/env python3
"""Push a generated report to a Feishu user as a rich-text post.

Usage:
  FEISHU_APP_ID=... FEISHU_APP_SECRET=... FEISHU_USER_OPEN_ID=... python gitlog_backend/scripts/push_feishu.py
"""
from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any, Optional

import requests

TOKEN_URL = "https://open.feishu.cn/open-apis/auth/v3/tenant_access_token/internal"
MESSAGE_URL = "https://open.feishu.cn/open-apis/im/v1/messages"
DEFAULT_REPORT_FILE = "dist/report-weekly.md"


def _check(response: requests.Response, action: str) -> dict[str, Any]:
    if not response.ok:
        raise RuntimeError(f"{action} failed: {response.status_code} {response.text}")
    data = response.json()
    if data.get("code", 0) != 0:
        raise RuntimeError(f"{action} failed: {data.get('msg', 'unknown error')}")
    return data


def get_tenant_access_token(app_id: str, app_secret: str, timeout: int = 15) -> str:
    response = requests.post(TOKEN_URL, json={"app_id": app_id, "app_secret": app_secret}, timeout=timeout)
    return _check(response, "Fetching tenant_access_token")["tenant_access_token"]


def build_post_content(title: str, report: str) -> dict[str, Any]:
    # One paragraph per line; Feishu posts do not render markdown.
    return {"zh_cn": {"title": title, "content": [[{"tag": "text", "text": line}] for line in report.split("\n")]}}


def send_post(token: str, open_id: str, title: str, report: str, timeout: int = 15) -> str:
    response = requests.post(
        MESSAGE_URL,
        params={"receive_id_type": "open_id"},
        headers={"Authorization": f"Bearer {token}"},
        json={
            "receive_id": open_id,
            "msg_type": "post",
            "content": json.dumps({"post": build_post_content(title, report)}, ensure_ascii=False),
        },
        timeout=timeout,
    )
    data = _check(response, "Sending message")
    return (data.get("data") or {}).get("message_id", "")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Push a report file to a Feishu user")
    parser.add_argument("--app-id", default=os.getenv("FEISHU_APP_ID", ""))
    parser.add_argument("--app-secret", default=os.getenv("FEISHU_APP_SECRET", ""))
    parser.add_argument("--user-open-id", default=os.getenv("FEISHU_USER_OPEN_ID", ""))
    parser.add_argument("--report-file", default=os.getenv("REPORT_FILE", DEFAULT_REPORT_FILE))
    parser.add_argument("--title", default=os.getenv("REPORT_TITLE", "Automated Weekly Report"))
    parser.add_argument("--summary", default=os.getenv("REPORT_SUMMARY", ""))
    args = parser.parse_args(argv)

    for flag, value in (("FEISHU_APP_ID", args.app_id), ("FEISHU_APP_SECRET", args.app_secret), ("FEISHU_USER_OPEN_ID", args.user_open_id)):
        if not value:
            print(f"{flag} is not set", file=sys.stderr)
            return 1

    try:
        print("Fetching tenant_access_token...")
        token = get_tenant_access_token(args.app_id, args.app_secret)
        report = args.summary or Path(args.report_file).read_text(encoding="utf-8")
        print("Sending message to Feishu...")
        send_post(token, args.user_open_id, args.title, report)
    except (OSError, requests.RequestException, RuntimeError, ValueError, KeyError) as e:
        print(f"Feishu push failed: {e}", file=sys.stderr)
        return 1
    print("Feishu push succeeded")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
