"""
Pytest configuration and fixtures for remote-sandbox tests.

The sandbox API is replaced by ``FakeSandboxAPI``, an in-memory stand-in
for ``APIClient`` exposing the same ``request`` / ``stream`` / ``close``
coroutines and raising errors through ``error_from_response``.
"""

import asyncio
import base64
import fnmatch
import re
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import unquote

import pytest
import pytest_asyncio

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from remote_sandbox.api.client import error_from_response  # noqa: E402
from remote_sandbox.auth.credentials import Credential  # noqa: E402
from remote_sandbox.client import SandboxClient  # noqa: E402
from remote_sandbox.config import SandboxConfig  # noqa: E402
from remote_sandbox.types import Port, SandboxSpec  # noqa: E402


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, isolated)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (require real services)"
    )
    config.addinivalue_line(
        "markers", "slow: Slow running tests"
    )


# =============================================================================
# Fake API
# =============================================================================

class FakeSandboxAPI:
    """In-memory sandbox platform."""

    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.closed = False

        # Control plane
        self.sandboxes: Dict[str, Dict[str, Any]] = {}
        self.volumes: Dict[str, Dict[str, Any]] = {}
        self.provisioning_polls = 0
        self.provisioning_outcome = "ready"
        self._pending_polls: Dict[str, int] = {}

        # Processes: command -> list of outcomes, consumed one per launch
        self.process_script: Dict[str, List[Dict[str, Any]]] = {}
        self.processes: Dict[tuple, Dict[str, Any]] = {}
        self.launches: List[tuple] = []

        # Filesystem, per sandbox
        self.files: Dict[tuple, bytes] = {}
        self.dirs: set = set()
        self.ignore_limits = False

        # Watch stream
        self.watch_events: List[Dict[str, Any]] = []
        self.watch_keep_open = False
        self.watch_error: Optional[Exception] = None

        # Previews
        self.previews: Dict[tuple, Dict[str, Any]] = {}
        self.tokens: Dict[tuple, List[Dict[str, Any]]] = {}

        # Jobs: status sequence walked one step per GET
        self.execution_statuses = ["running", "completed"]
        self.executions: Dict[str, Dict[str, Any]] = {}
        self.execution_polls: Dict[str, int] = {}

        self._counter = 0
        self._routes = [
            ("POST", r"/sandboxes", self._create_sandbox),
            ("GET", r"/sandboxes", self._list_sandboxes),
            ("GET", r"/sandboxes/(?P<sb>[^/]+)", self._get_sandbox),
            ("DELETE", r"/sandboxes/(?P<sb>[^/]+)", self._delete_sandbox),
            ("POST", r"/volumes", self._create_volume),
            ("GET", r"/volumes", self._list_volumes),
            ("GET", r"/volumes/(?P<name>[^/]+)", self._get_volume),
            ("DELETE", r"/volumes/(?P<name>[^/]+)", self._delete_volume),
            ("POST", r"/sandboxes/(?P<sb>[^/]+)/process", self._exec),
            ("GET", r"/sandboxes/(?P<sb>[^/]+)/process", self._list_processes),
            ("GET", r"/sandboxes/(?P<sb>[^/]+)/process/(?P<name>[^/]+)", self._get_process),
            ("GET", r"/sandboxes/(?P<sb>[^/]+)/process/(?P<name>[^/]+)/logs", self._process_logs),
            ("GET", r"/sandboxes/(?P<sb>[^/]+)/process/(?P<name>[^/]+)/ports", self._process_ports),
            ("DELETE", r"/sandboxes/(?P<sb>[^/]+)/process/(?P<name>[^/]+)/kill", self._kill),
            ("GET", r"/sandboxes/(?P<sb>[^/]+)/filesystem(?P<path>/.*)", self._fs_get),
            ("PUT", r"/sandboxes/(?P<sb>[^/]+)/filesystem(?P<path>/.*)", self._fs_put),
            ("DELETE", r"/sandboxes/(?P<sb>[^/]+)/filesystem(?P<path>/.*)", self._fs_delete),
            ("GET", r"/sandboxes/(?P<sb>[^/]+)/filesystem-search(?P<path>/.*)", self._fs_search),
            ("GET", r"/sandboxes/(?P<sb>[^/]+)/filesystem-find(?P<path>/.*)", self._fs_find),
            ("POST", r"/sandboxes/(?P<sb>[^/]+)/previews", self._create_preview),
            ("GET", r"/sandboxes/(?P<sb>[^/]+)/previews", self._list_previews),
            ("GET", r"/sandboxes/(?P<sb>[^/]+)/previews/(?P<name>[^/]+)", self._get_preview),
            ("DELETE", r"/sandboxes/(?P<sb>[^/]+)/previews/(?P<name>[^/]+)", self._delete_preview),
            ("POST", r"/sandboxes/(?P<sb>[^/]+)/previews/(?P<name>[^/]+)/tokens", self._create_token),
            ("GET", r"/sandboxes/(?P<sb>[^/]+)/previews/(?P<name>[^/]+)/tokens", self._list_tokens),
            ("DELETE", r"/sandboxes/(?P<sb>[^/]+)/previews/(?P<name>[^/]+)/tokens/(?P<value>[^/]+)",
             self._delete_token),
            ("POST", r"/jobs/(?P<job>[^/]+)/executions", self._create_execution),
            ("GET", r"/jobs/(?P<job>[^/]+)/executions", self._list_executions),
            ("GET", r"/jobs/(?P<job>[^/]+)/executions/(?P<id>[^/]+)", self._get_execution),
            ("DELETE", r"/jobs/(?P<job>[^/]+)/executions/(?P<id>[^/]+)", self._delete_execution),
        ]
        self._routes = [(m, re.compile(p), h) for m, p, h in self._routes]

    # -------------------------------------------------------------------------
    # Transport interface
    # -------------------------------------------------------------------------

    async def request(self, method, path, json=None, params=None, resource=None):
        self.calls.append((method, path, json, params))
        await asyncio.sleep(0)
        for route_method, regex, handler in self._routes:
            match = regex.fullmatch(path) if route_method == method else None
            if match:
                return handler(match.groupdict(), json or {}, params or {}, (f"{method} {path}", resource))
        raise error_from_response(404, {"message": "no route"}, f"{method} {path}", resource)

    async def stream(self, method, path, params=None, resource=None):
        self.calls.append((method, path, None, params))
        for event in self.watch_events:
            await asyncio.sleep(0)
            if not params or not params.get("withContent"):
                event = {k: v for k, v in event.items() if k != "content"}
            yield event
        if self.watch_error is not None:
            raise self.watch_error
        if self.watch_keep_open:
            await asyncio.Event().wait()

    async def close(self):
        self.closed = True

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def count(self, method: str, pattern: str) -> int:
        regex = re.compile(pattern)
        return sum(1 for m, p, _, _ in self.calls if m == method and regex.fullmatch(p))

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}-{self._counter}"

    @staticmethod
    def _missing(ctx, what="resource"):
        operation, resource = ctx
        return error_from_response(404, {"message": f"{what} not found"}, operation, resource)

    @staticmethod
    def _conflict(ctx):
        operation, resource = ctx
        return error_from_response(409, {"message": "already exists"}, operation, resource)

    # -------------------------------------------------------------------------
    # Sandboxes and volumes
    # -------------------------------------------------------------------------

    def _create_sandbox(self, args, body, params, ctx):
        name = body["name"]
        if name in self.sandboxes:
            raise self._conflict(ctx)
        status = "provisioning" if self.provisioning_polls else self.provisioning_outcome
        record = {
            **body,
            "status": status,
            "url": f"https://{name}.sandbox.test",
            "createdAt": "2026-01-01T00:00:00Z",
            "uid": self._next_id("sbx"),
        }
        self._pending_polls[name] = self.provisioning_polls
        self.sandboxes[name] = record
        return dict(record)

    def _list_sandboxes(self, args, body, params, ctx):
        wanted = params.get("labels") or []
        records = []
        for record in self.sandboxes.values():
            labels = record.get("labels", {})
            if all(labels.get(item.split("=", 1)[0]) == item.split("=", 1)[1] for item in wanted):
                records.append(dict(record))
        return records

    def _get_sandbox(self, args, body, params, ctx):
        record = self.sandboxes.get(args["sb"])
        if record is None:
            raise self._missing(ctx)
        if record["status"] == "provisioning":
            self._pending_polls[args["sb"]] -= 1
            if self._pending_polls[args["sb"]] <= 0:
                record["status"] = self.provisioning_outcome
                if self.provisioning_outcome == "failed":
                    record["reason"] = "image pull failed"
        return dict(record)

    def _delete_sandbox(self, args, body, params, ctx):
        if self.sandboxes.pop(args["sb"], None) is None:
            raise self._missing(ctx)
        return {}

    def _create_volume(self, args, body, params, ctx):
        if body["name"] in self.volumes:
            raise self._conflict(ctx)
        record = {**body, "status": "ready", "uid": self._next_id("vol")}
        self.volumes[body["name"]] = record
        return dict(record)

    def _list_volumes(self, args, body, params, ctx):
        return [dict(r) for r in self.volumes.values()]

    def _get_volume(self, args, body, params, ctx):
        if args["name"] not in self.volumes:
            raise self._missing(ctx)
        return dict(self.volumes[args["name"]])

    def _delete_volume(self, args, body, params, ctx):
        if self.volumes.pop(args["name"], None) is None:
            raise self._missing(ctx)
        return {}

    # -------------------------------------------------------------------------
    # Processes
    # -------------------------------------------------------------------------

    def _exec(self, args, body, params, ctx):
        sandbox = args["sb"]
        if sandbox not in self.sandboxes:
            raise self._missing(ctx, "sandbox")
        name = body.get("name") or self._next_id("proc")
        existing = self.processes.get((sandbox, name))
        if existing and existing["status"] == "running":
            raise self._conflict(ctx)

        script = self.process_script.get(body["command"])
        if script:
            outcome = script.pop(0) if len(script) > 1 else script[0]
        else:
            outcome = {"status": "completed", "exit_code": 0, "stdout": ""}

        self.launches.append((sandbox, dict(body)))
        self.processes[(sandbox, name)] = {
            "name": name,
            "pid": 1000 + len(self.launches),
            "command": body["command"],
            "workingDir": body.get("workingDir"),
            "status": "running",
            "outcome": outcome,
            "remaining": outcome.get("polls", 0),
            "port_polls": 0,
        }
        return self._process_view(self.processes[(sandbox, name)])

    @staticmethod
    def _process_view(proc):
        return {k: proc[k] for k in ("name", "pid", "command", "workingDir", "status")} | {
            "exitCode": proc.get("exitCode"),
        }

    def _lookup(self, args, ctx):
        proc = self.processes.get((args["sb"], args["name"]))
        if proc is None:
            raise self._missing(ctx, "process")
        return proc

    def _get_process(self, args, body, params, ctx):
        proc = self._lookup(args, ctx)
        if proc["status"] == "running":
            outcome = proc["outcome"]
            if outcome["status"] != "running":
                if proc["remaining"] > 0:
                    proc["remaining"] -= 1
                else:
                    proc["status"] = outcome["status"]
                    proc["exitCode"] = outcome.get("exit_code")
        return self._process_view(proc)

    def _list_processes(self, args, body, params, ctx):
        return [self._process_view(p) for (sb, _), p in self.processes.items() if sb == args["sb"]]

    def _process_logs(self, args, body, params, ctx):
        proc = self._lookup(args, ctx)
        stdout = proc["outcome"].get("stdout", "")
        stderr = proc["outcome"].get("stderr", "")
        return {"stdout": stdout, "stderr": stderr, "logs": stdout + stderr}

    def _process_ports(self, args, body, params, ctx):
        proc = self._lookup(args, ctx)
        proc["port_polls"] += 1
        if proc["port_polls"] <= proc["outcome"].get("port_delay", 0):
            return {"ports": []}
        return {"ports": proc["outcome"].get("ports", [])}

    def _kill(self, args, body, params, ctx):
        proc = self._lookup(args, ctx)
        proc["status"] = "killed"
        return {}

    # -------------------------------------------------------------------------
    # Filesystem
    # -------------------------------------------------------------------------

    def _add_dirs(self, sandbox, path):
        parts = [p for p in path.split("/") if p]
        for i in range(len(parts) + 1):
            self.dirs.add((sandbox, "/" + "/".join(parts[:i])))

    def _parent(self, path):
        return path.rsplit("/", 1)[0] or "/"

    def _fs_get(self, args, body, params, ctx):
        sandbox, path = args["sb"], unquote(args["path"])
        if (sandbox, path) in self.files:
            data = self.files[(sandbox, path)]
            if params.get("stat"):
                return {"path": path, "size": len(data)}
            if params.get("encoding") == "base64":
                return {"path": path, "content": base64.b64encode(data).decode()}
            return {"path": path, "content": data.decode("utf-8")}
        if (sandbox, path) in self.dirs:
            subdirs = sorted(
                d for (sb, d) in self.dirs
                if sb == sandbox and d != path and self._parent(d) == path
            )
            files = sorted(
                (f, len(c)) for (sb, f), c in self.files.items()
                if sb == sandbox and self._parent(f) == path
            )
            return {
                "path": path,
                "subdirectories": [{"name": d.rsplit("/", 1)[1], "path": d} for d in subdirs],
                "files": [{"name": f.rsplit("/", 1)[1], "path": f, "size": n} for f, n in files],
            }
        raise self._missing(ctx, "path")

    def _fs_put(self, args, body, params, ctx):
        sandbox, path = args["sb"], unquote(args["path"])
        if body.get("isDirectory"):
            self._add_dirs(sandbox, path)
            return {"path": path}
        if body.get("encoding") == "base64":
            data = base64.b64decode(body["content"])
        else:
            data = body["content"].encode("utf-8")
        self._add_dirs(sandbox, self._parent(path))
        self.files[(sandbox, path)] = data
        return {"path": path}

    def _fs_delete(self, args, body, params, ctx):
        sandbox, path = args["sb"], unquote(args["path"])
        if self.files.pop((sandbox, path), None) is not None:
            return {}
        if (sandbox, path) not in self.dirs:
            raise self._missing(ctx, "path")
        children = [f for (sb, f) in self.files if sb == sandbox and f.startswith(path + "/")]
        if children and not params.get("recursive"):
            operation, resource = ctx
            raise error_from_response(400, {"message": "directory not empty"}, operation, resource)
        for child in children:
            del self.files[(sandbox, child)]
        self.dirs = {(sb, d) for sb, d in self.dirs if not (sb == sandbox and (d == path or d.startswith(path + "/")))}
        return {}

    def _walk(self, sandbox, root, exclude):
        prefix = root.rstrip("/") + "/"
        for (sb, path), data in sorted(self.files.items()):
            if sb != sandbox or not path.startswith(prefix):
                continue
            relative_dirs = path[len(prefix):].split("/")[:-1]
            if any(d in exclude for d in relative_dirs):
                continue
            yield path, data

    def _fs_search(self, args, body, params, ctx):
        sandbox, root = args["sb"], unquote(args["path"])
        flags = 0 if params.get("caseSensitive", True) else re.IGNORECASE
        regex = re.compile(params["pattern"], flags)
        include = params.get("include")
        context = params.get("contextLines", 0)
        limit = params.get("maxResults", 100)

        matches = []
        for path, data in self._walk(sandbox, root, set(params.get("excludeDirs") or [])):
            if include and not fnmatch.fnmatch(path.rsplit("/", 1)[1], include):
                continue
            lines = data.decode("utf-8").splitlines()
            for i, line in enumerate(lines):
                if regex.search(line):
                    matches.append({
                        "path": path,
                        "line": i + 1,
                        "text": line,
                        "context": lines[max(0, i - context):i] + lines[i + 1:i + 1 + context],
                    })
        if not self.ignore_limits:
            matches = matches[:limit]
        return {"matches": matches}

    def _fs_find(self, args, body, params, ctx):
        sandbox, root = args["sb"], unquote(args["path"])
        pattern = params.get("patterns", "*")
        prefix = root.rstrip("/") + "/"
        entries = [(p, "file") for (sb, p) in self.files if sb == sandbox and p.startswith(prefix)]
        entries += [(d, "directory") for (sb, d) in self.dirs if sb == sandbox and d.startswith(prefix)]
        matches = [
            {"path": p, "type": t}
            for p, t in sorted(entries)
            if fnmatch.fnmatch(p.rsplit("/", 1)[1], pattern)
            and (self.ignore_limits or not params.get("type") or params["type"] == t)
        ]
        if not self.ignore_limits:
            matches = matches[:params.get("maxResults", 1000)]
        return {"matches": matches}

    # -------------------------------------------------------------------------
    # Previews
    # -------------------------------------------------------------------------

    def _create_preview(self, args, body, params, ctx):
        key = (args["sb"], body["name"])
        if key in self.previews:
            raise self._conflict(ctx)
        prefix = body.get("prefixUrl") or f"{body['port']}-{args['sb']}"
        record = {**body, "url": f"https://{prefix}.preview.test"}
        self.previews[key] = record
        return dict(record)

    def _list_previews(self, args, body, params, ctx):
        return [dict(r) for (sb, _), r in self.previews.items() if sb == args["sb"]]

    def _get_preview(self, args, body, params, ctx):
        record = self.previews.get((args["sb"], args["name"]))
        if record is None:
            raise self._missing(ctx, "preview")
        return dict(record)

    def _delete_preview(self, args, body, params, ctx):
        if self.previews.pop((args["sb"], args["name"]), None) is None:
            raise self._missing(ctx, "preview")
        return {}

    def _create_token(self, args, body, params, ctx):
        token = {"value": self._next_id("tok"), "expiresAt": body["expiresAt"]}
        self.tokens.setdefault((args["sb"], args["name"]), []).append(token)
        return dict(token)

    def _list_tokens(self, args, body, params, ctx):
        return [dict(t) for t in self.tokens.get((args["sb"], args["name"]), [])]

    def _delete_token(self, args, body, params, ctx):
        tokens = self.tokens.get((args["sb"], args["name"]), [])
        remaining = [t for t in tokens if t["value"] != args["value"]]
        if len(remaining) == len(tokens):
            raise self._missing(ctx, "token")
        self.tokens[(args["sb"], args["name"])] = remaining
        return {}

    # -------------------------------------------------------------------------
    # Jobs
    # -------------------------------------------------------------------------

    def _create_execution(self, args, body, params, ctx):
        execution_id = self._next_id("exec")
        self.executions[execution_id] = {
            "id": execution_id,
            "jobName": args["job"],
            "status": "pending",
            "tasks": body["tasks"],
            "metadata": {"taskCount": len(body["tasks"])},
        }
        self.execution_polls[execution_id] = 0
        return {"executionId": execution_id}

    def _list_executions(self, args, body, params, ctx):
        return [dict(e) for e in self.executions.values() if e["jobName"] == args["job"]]

    def _get_execution(self, args, body, params, ctx):
        execution = self.executions.get(args["id"])
        if execution is None:
            raise self._missing(ctx, "execution")
        polls = self.execution_polls[args["id"]]
        self.execution_polls[args["id"]] = polls + 1
        statuses = self.execution_statuses
        execution["status"] = statuses[min(polls, len(statuses) - 1)]
        return dict(execution)

    def _delete_execution(self, args, body, params, ctx):
        if self.executions.pop(args["id"], None) is None:
            raise self._missing(ctx, "execution")
        return {}


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_api() -> FakeSandboxAPI:
    """In-memory API transport."""
    return FakeSandboxAPI()


@pytest.fixture
def credential() -> Credential:
    return Credential(workspace="test-workspace", api_key="test-key", source="explicit")


@pytest.fixture
def sandbox_config() -> SandboxConfig:
    """Fast-polling configuration for tests."""
    return SandboxConfig(
        api_endpoint="https://api.sandbox.test/v0",
        poll_interval_sec=0.01,
        default_timeout_sec=5,
        provisioning_timeout_sec=2,
    )


@pytest.fixture
def client(fake_api, credential, sandbox_config) -> SandboxClient:
    return SandboxClient(credential=credential, config=sandbox_config, api=fake_api)


@pytest_asyncio.fixture
async def sandbox(client):
    """Ready sandbox 'my-sandbox' declaring port 3000."""
    return await client.sandboxes.create_if_not_exists(
        SandboxSpec(name="my-sandbox", ports=[Port(target=3000)])
    )


@pytest.fixture
def temp_dir(tmp_path) -> Path:
    return tmp_path
