"""
Pytest configuration and fixtures
"""

import json

import pytest
import requests
from docker.errors import APIError
from loguru import logger

from swarm_node_manager.core.config import build_config


def node_payload(node_id, version=10, role="worker", availability="active", labels=None, hostname=None):
    return {
        "ID": node_id,
        "Version": {"Index": version},
        "Spec": {"Role": role, "Availability": availability, "Labels": dict(labels or {})},
        "Description": {"Hostname": hostname or f"host-{node_id}"},
    }


def task_payload(task_id, state, node_id="n1"):
    return {"ID": task_id, "NodeID": node_id, "Status": {"State": state}}


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        if text is None:
            text = "" if body is None else json.dumps(body)
        self.text = text

    def json(self):
        return json.loads(self.text)


class FakeHttp:
    """
    Scripted transport. `routes` maps (method, url) to a FakeResponse, an
    exception instance, or a list of those consumed one per call.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def _answer(self, method, url, params, body):
        self.calls.append((method, url, params, body))
        answer = self.routes.get((method, url))
        if isinstance(answer, list):
            answer = answer.pop(0) if len(answer) > 1 else answer[0]
        if answer is None:
            raise requests.ConnectionError(f"no route for {method} {url}")
        if isinstance(answer, Exception):
            raise answer
        return answer

    def get(self, url, params=None):
        return self._answer("GET", url, params, None)

    def post(self, url, params=None, json=None):
        return self._answer("POST", url, params, json)

    def posts(self):
        return [c for c in self.calls if c[0] == "POST"]


class FakeNode:
    def __init__(self, attrs, fail_updates=0):
        self.attrs = attrs
        self.updates = []
        self.fail_updates = fail_updates

    @property
    def id(self):
        return self.attrs["ID"]

    def reload(self):
        pass

    def update(self, node_spec):
        if self.fail_updates:
            self.fail_updates -= 1
            raise APIError("update out of sequence")
        self.updates.append(node_spec)
        self.attrs["Spec"]["Availability"] = node_spec["Availability"]
        self.attrs["Spec"]["Labels"] = node_spec["Labels"]
        self.attrs["Version"]["Index"] += 1
        return True


class FakeNodes:
    def __init__(self, client):
        self.client = client

    def list(self, filters=None):
        if not self.client.manager:
            raise APIError("This node is not a swarm manager.")
        nodes = list(self.client.node_map.values())
        role = (filters or {}).get("role")
        if role == "worker" and self.client.worker_list_failures:
            self.client.worker_list_failures -= 1
            raise APIError("rpc error: The swarm does not have a leader")
        if role:
            nodes = [n for n in nodes if n.attrs["Spec"]["Role"] == role]
        return nodes

    def get(self, node_id):
        if not self.client.manager:
            raise APIError("This node is not a swarm manager.")
        return self.client.node_map[node_id]


class FakeApi:
    def __init__(self, client):
        self.client = client
        self.task_calls = []

    def tasks(self, filters=None):
        self.task_calls.append(filters)
        return list(self.client.tasks)


class FakeContainer:
    def __init__(self, name):
        self.name = name
        self.removed = False

    def remove(self, force=False):
        self.removed = force


class FakeContainers:
    def __init__(self, items, error=None):
        self.items = items
        self.error = error

    def list(self):
        if self.error:
            raise self.error
        return list(self.items)


class FakeDockerClient:
    def __init__(self, node_id="self1", manager=True, nodes=None, tasks=None, containers=None):
        self.node_id = node_id
        self.manager = manager
        self.node_map = {n.id: n for n in (nodes or [])}
        self.tasks = tasks or []
        self.nodes = FakeNodes(self)
        self.api = FakeApi(self)
        self.containers = FakeContainers(containers or [])
        self.worker_list_failures = 0

    def info(self):
        return {"Swarm": {"NodeID": self.node_id}}

    def ping(self):
        return True


class RecordingSleep:
    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)

    @property
    def elapsed(self):
        return sum(self.delays)


@pytest.fixture
def sleeper():
    return RecordingSleep()


@pytest.fixture
def log_records():
    """Capture (level, message) pairs emitted through loguru."""
    records = []
    handler_id = logger.add(lambda m: records.append((m.record["level"].name, m.record["message"])), level="DEBUG")
    yield records
    logger.remove(handler_id)


@pytest.fixture
def make_config():
    def factory(mode="startup", **cli_values):
        return build_config(mode, cli_values=cli_values, file_values={}, environ={})
    return factory
