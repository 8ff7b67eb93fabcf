import json

import pytest
import requests

from swarm_node_manager.core.errors import DiscoveryError, TaskQueryError
from swarm_node_manager.core.models import Availability, ManagerEndpoint, TaskState
from swarm_node_manager.lib.cluster_client import ClusterClient
from swarm_node_manager.lib.retries import retry

from conftest import FakeDockerClient, FakeHttp, FakeNode, FakeResponse, node_payload, task_payload

NODE = "w1"


def spec_route(manager, payload=None, status=200, text=None):
    return ("GET", f"http://{manager}/nodes/{NODE}"), FakeResponse(status, payload, text=text)


def update_route(manager, status=200):
    return ("POST", f"http://{manager}/nodes/{NODE}/update"), FakeResponse(status, {})


@pytest.fixture
def three_managers(make_config):
    return make_config(manager_addresses="m1,m2,m3")


def test_failover_stops_at_first_success(three_managers):
    payload = node_payload(NODE, version=7, labels={"zfs": "true"})
    http = FakeHttp(dict([
        (("GET", f"http://m1:2375/nodes/{NODE}"), requests.Timeout("timed out")),
        spec_route("m2:2375", payload),
        update_route("m2:2375", status=409),
        spec_route("m3:2375", payload),
        update_route("m3:2375", status=200),
    ]))
    client = ClusterClient(http, three_managers)

    assert client.update_node(NODE, availability=Availability.DRAIN) is True

    hosts = [c[1].split("/")[2] for c in http.calls]
    assert hosts == ["m1:2375", "m2:2375", "m2:2375", "m3:2375", "m3:2375"]
    method, url, params, body = http.posts()[-1]
    assert url == f"http://m3:2375/nodes/{NODE}/update"
    assert params == {"version": 7}
    assert body == {"Availability": "drain", "Role": "worker", "Labels": {"zfs": "true"}}


def test_first_manager_success_skips_the_rest(three_managers):
    payload = node_payload(NODE)
    http = FakeHttp(dict([spec_route("m1:2375", payload), update_route("m1:2375")]))
    assert ClusterClient(http, three_managers).update_node(NODE, Availability.ACTIVE) is True
    assert all("m1:2375" in c[1] for c in http.calls)


def test_all_managers_failing_returns_false(three_managers, log_records):
    http = FakeHttp(dict([
        spec_route("m1:2375", text=""),
        spec_route("m2:2375", status=500, text="boom"),
        spec_route("m3:2375", node_payload(NODE)),
        update_route("m3:2375", status=409),
    ]))
    assert ClusterClient(http, three_managers).update_node(NODE, Availability.ACTIVE) is False
    gets = [c[1] for c in http.calls if c[0] == "GET"]
    assert gets == [f"http://m{i}:2375/nodes/{NODE}" for i in (1, 2, 3)]
    assert ("ERROR", f"[cluster] Failed to update node '{NODE}' on all manager nodes.") in log_records


def test_retry_tries_every_manager_once_per_attempt(three_managers, sleeper):
    http = FakeHttp({
        ("GET", f"http://m{i}:2375/nodes/{NODE}"): requests.ConnectionError("down") for i in (1, 2, 3)
    })
    client = ClusterClient(http, three_managers)

    assert retry(lambda: client.update_node(NODE, Availability.DRAIN), "drain", sleep=sleeper) is False

    hosts = [c[1].split("/")[2] for c in http.calls]
    assert hosts == ["m1:2375", "m2:2375", "m3:2375"] * 6
    assert sleeper.delays == [1, 2, 4, 8, 16]


def test_conflict_is_retried_with_fresh_version(make_config, sleeper):
    config = make_config(manager_addresses="m1")
    http = FakeHttp(dict([
        (("GET", f"http://m1:2375/nodes/{NODE}"), [
            FakeResponse(200, node_payload(NODE, version=5)),
            FakeResponse(200, node_payload(NODE, version=6)),
        ]),
        (("POST", f"http://m1:2375/nodes/{NODE}/update"), [FakeResponse(409, {}), FakeResponse(200, {})]),
    ]))
    client = ClusterClient(http, config)

    assert retry(lambda: client.update_node(NODE, Availability.ACTIVE), "activate", sleep=sleeper) is True
    assert [p[2] for p in http.posts()] == [{"version": 5}, {"version": 6}]


def test_gpu_label_merge_keeps_existing_labels_and_availability(make_config):
    config = make_config(manager_addresses="m1")
    payload = node_payload(NODE, role="worker", availability="pause", labels={"zfs": "true", "site": "lab"})
    http = FakeHttp(dict([spec_route("m1:2375", payload), update_route("m1:2375")]))

    assert ClusterClient(http, config).update_node(NODE, gpu=True) is True

    body = http.posts()[0][3]
    assert body == {
        "Availability": "pause",
        "Role": "worker",
        "Labels": {"zfs": "true", "site": "lab", "gpu": "true"},
    }


def test_get_node_spec_soft_failures(make_config):
    config = make_config(manager_addresses="m1")
    manager = ManagerEndpoint("m1", 2375)
    for response in (FakeResponse(200, text=""), FakeResponse(200, text="not json"),
                     FakeResponse(404, {"message": "no such node"}), FakeResponse(200, {"Spec": {}})):
        http = FakeHttp({("GET", f"http://m1:2375/nodes/{NODE}"): response})
        assert ClusterClient(http, config).get_node_spec(NODE, manager) is None


def test_resolve_managers_prefers_configuration(make_config):
    config = make_config(manager_addresses="m1:2376, m2")
    docker = FakeDockerClient(manager=True)
    managers = ClusterClient(FakeHttp(), config, docker).resolve_managers()
    assert managers == [ManagerEndpoint("m1", 2376), ManagerEndpoint("m2", 2375)]


def test_resolve_managers_discovers_in_listing_order(make_config):
    config = make_config(docker_api_port=4243)
    docker = FakeDockerClient(manager=True, nodes=[
        FakeNode(node_payload("a", role="manager", hostname="mgr-a")),
        FakeNode(node_payload("b", role="worker", hostname="wrk-b")),
        FakeNode(node_payload("c", role="manager", hostname="mgr-c")),
    ])
    client = ClusterClient(FakeHttp(), config, docker)
    assert client.resolve_managers() == [ManagerEndpoint("mgr-a", 4243), ManagerEndpoint("mgr-c", 4243)]


def test_discovery_failure_is_fatal(make_config):
    worker_docker = FakeDockerClient(manager=False)
    with pytest.raises(DiscoveryError):
        ClusterClient(FakeHttp(), make_config(), worker_docker).resolve_managers()
    with pytest.raises(DiscoveryError):
        ClusterClient(FakeHttp(), make_config(), None).update_node(NODE, Availability.ACTIVE)


def test_list_tasks_filters_by_node(make_config):
    config = make_config(manager_addresses="m1,m2")
    http = FakeHttp({
        ("GET", "http://m1:2375/tasks"): requests.ConnectionError("down"),
        ("GET", "http://m2:2375/tasks"): FakeResponse(200, [task_payload("t1", "running", NODE),
                                                            task_payload("t2", "shutdown", NODE)]),
    })
    tasks = ClusterClient(http, config).list_tasks(NODE)

    assert [t.state for t in tasks] == [TaskState.RUNNING, TaskState.SHUTDOWN]
    assert json.loads(http.calls[-1][2]["filters"]) == {"node": [NODE]}


def test_list_tasks_raises_when_no_manager_answers(make_config):
    config = make_config(manager_addresses="m1")
    http = FakeHttp({("GET", "http://m1:2375/tasks"): FakeResponse(200, text="<html>")})
    with pytest.raises(TaskQueryError):
        ClusterClient(http, config).list_tasks(NODE)
