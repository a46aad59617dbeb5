#!/usr/bin/env python3
"""Golden path demo for TaskMaster (create, tag, update with ETag, delete)."""

from __future__ import annotations

import json
import os
import sys
from typing import Any
from urllib.error import HTTPError
from urllib.parse import urlencode
from urllib.request import Request, urlopen


def _env(name: str, default: str | None = None) -> str | None:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value


class HttpClient:
    def __init__(self, base_url: str, api_key: str | None = None, user_id: str | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers: dict[str, str] = {"Content-Type": "application/json"}
        if api_key:
            self.headers["Authorization"] = f"Bearer {api_key}"
        if user_id:
            self.headers["X-User-ID"] = user_id

    def request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        query: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
    ) -> tuple[int, dict[str, str], Any]:
        url = f"{self.base_url}{path}"
        if query:
            query = {k: v for k, v in query.items() if v is not None}
            if query:
                url = f"{url}?{urlencode(query, doseq=True)}"

        data = None
        if payload is not None:
            data = json.dumps(payload, default=str).encode("utf-8")

        req = Request(url, data=data, method=method)
        for key, value in {**self.headers, **(headers or {})}.items():
            req.add_header(key, value)

        try:
            with urlopen(req, timeout=timeout) as response:
                raw = response.read()
                status = response.status
                response_headers = dict(response.headers.items())
        except HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            return exc.code, dict(exc.headers.items()), detail

        body = json.loads(raw.decode("utf-8")) if raw else None
        return status, response_headers, body

    def request_json(self, method: str, path: str, **kwargs: Any) -> tuple[dict[str, str], Any]:
        status, headers, body = self.request(method, path, **kwargs)
        if status >= 400:
            raise RuntimeError(f"{method} {path} failed: {status}: {body}")
        return headers, body


def main() -> int:
    base_url = _env("TASKMASTER_URL", "http://localhost:8080")
    api_key = _env("TASKMASTER_API_KEY")
    user_id = _env("TASKMASTER_DEMO_USER", "demo-user")

    client = HttpClient(base_url, api_key=api_key, user_id=user_id)

    print("Checking health...")
    _, health = client.request_json("GET", "/v1/health")
    if health.get("status") != "healthy":
        raise RuntimeError(f"Unexpected health response: {health}")

    print("Creating task...")
    headers, task = client.request_json(
        "POST",
        "/v1/tasks",
        payload={
            "title": " Buy milk ",
            "priority": "High",
            "tags": ["errands", "home"],
        },
    )
    task_id = task["id"]
    etag = headers.get("ETag") or headers.get("etag")
    if task["title"] != "Buy milk" or not etag:
        raise RuntimeError(f"Unexpected create response: {task}")
    print(f"Task created: {task_id} (ETag {etag})")

    print("Starting task with If-Match...")
    headers, task = client.request_json(
        "PATCH",
        f"/v1/tasks/{task_id}",
        payload={"status": "InProgress", "tags": ["Errands"]},
        headers={"If-Match": etag},
    )
    stale_etag, etag = etag, headers.get("ETag") or headers.get("etag")
    if [t["name"] for t in task["tags"]] != ["errands"]:
        raise RuntimeError(f"Tag set not replaced: {task['tags']}")

    print("Replaying the stale ETag (expect 412)...")
    status, _, _ = client.request(
        "PATCH",
        f"/v1/tasks/{task_id}",
        payload={"status": "Done"},
        headers={"If-Match": stale_etag},
    )
    if status != 412:
        raise RuntimeError(f"Stale update was not rejected: {status}")

    print("Searching...")
    _, page = client.request_json(
        "GET",
        "/v1/tasks",
        query={"tags": ["ERRANDS"], "statuses": ["InProgress"], "sort_by": "priority"},
    )
    if task_id not in {t["id"] for t in page["items"]}:
        raise RuntimeError(f"Task missing from search results: {page}")

    print("Deleting task...")
    client.request_json("DELETE", f"/v1/tasks/{task_id}", headers={"If-Match": etag})

    status, _, _ = client.request("GET", f"/v1/tasks/{task_id}")
    if status != 404:
        raise RuntimeError(f"Deleted task still readable: {status}")

    _, tags = client.request_json("GET", "/v1/tags", query={"search": "err"})
    if "errands" not in {t["name"] for t in tags}:
        raise RuntimeError(f"Tag should survive task deletion: {tags}")

    print("Golden path complete: create, guarded update, search and delete behaved.")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except Exception as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        raise
