"""Tests for the Docker Engine API cluster client."""

from __future__ import annotations

import base64
import json

import httpx
import pytest

from cluster_license.config import DockerConfig
from cluster_license.docker import DockerClusterClient, _transport_for
from cluster_license.licensing import ConfigNameConflict, load_license


def _client(handler, **kwargs) -> DockerClusterClient:
    return DockerClusterClient(
        host="http://docker", transport=httpx.MockTransport(handler), **kwargs,
    )


class TestTransport:
    def test_unix_socket(self):
        base_url, transport = _transport_for("unix:///var/run/docker.sock")
        assert base_url == "http://docker"
        assert isinstance(transport, httpx.HTTPTransport)

    def test_tcp(self):
        assert _transport_for("tcp://10.0.0.5:2375") == ("http://10.0.0.5:2375", None)

    def test_https(self):
        assert _transport_for("https://engine:2376") == ("https://engine:2376", None)

    def test_unsupported(self):
        with pytest.raises(ValueError):
            _transport_for("npipe:////./pipe/docker_engine")

    def test_from_config(self):
        client = DockerClusterClient.from_config(DockerConfig(host="tcp://127.0.0.1:2375"))
        client.close()


class TestDockerClusterClient:
    def test_list_nodes(self):
        def handler(request):
            assert request.url.path == "/nodes"
            return httpx.Response(200, json=[{"ID": "n1"}, {"ID": "n2"}])

        with _client(handler) as client:
            assert [n["ID"] for n in client.list_nodes()] == ["n1", "n2"]

    def test_list_nodes_outside_swarm_raises(self):
        def handler(request):
            return httpx.Response(503, json={"message": "This node is not a swarm manager."})

        with _client(handler) as client, pytest.raises(httpx.HTTPStatusError):
            client.list_nodes()

    def test_api_version_prefix(self):
        def handler(request):
            assert request.url.path == "/v1.41/nodes"
            return httpx.Response(200, json=[])

        with _client(handler, api_version="1.41") as client:
            assert client.list_nodes() == []

    def test_list_config_names_filters_by_prefix(self):
        def handler(request):
            assert request.url.path == "/configs"
            assert json.loads(request.url.params["filters"]) == {"name": ["com.docker.license"]}
            return httpx.Response(200, json=[
                {"ID": "a", "Spec": {"Name": "com.docker.license-0"}},
                {"ID": "b", "Spec": {"Name": "com.docker.license-1"}},
            ])

        with _client(handler) as client:
            names = client.list_config_names("com.docker.license")
        assert names == ["com.docker.license-0", "com.docker.license-1"]

    def test_create_config(self):
        seen = {}

        def handler(request):
            assert request.method == "POST"
            assert request.url.path == "/configs/create"
            seen.update(json.loads(request.content))
            return httpx.Response(201, json={"ID": "cfg123"})

        with _client(handler) as client:
            config_id = client.create_config("com.docker.license-0", {"a": "b"}, b"\x00lic")

        assert config_id == "cfg123"
        assert seen["Name"] == "com.docker.license-0"
        assert seen["Labels"] == {"a": "b"}
        assert base64.b64decode(seen["Data"]) == b"\x00lic"

    def test_create_conflict(self):
        def handler(request):
            return httpx.Response(409, json={"message": "name conflicts with an existing object"})

        with _client(handler) as client, pytest.raises(ConfigNameConflict) as exc_info:
            client.create_config("com.docker.license-3", {}, b"x")
        assert exc_info.value.name == "com.docker.license-3"

    def test_create_server_error(self):
        def handler(request):
            return httpx.Response(500, json={"message": "boom"})

        with _client(handler) as client, pytest.raises(httpx.HTTPStatusError):
            client.create_config("com.docker.license-0", {}, b"x")


class TestLoadThroughEngine:
    def test_swarm_manager_gets_next_config(self, tmp_path):
        created = []

        def handler(request):
            if request.url.path == "/nodes":
                return httpx.Response(200, json=[{"ID": "n1"}])
            if request.url.path == "/configs":
                return httpx.Response(200, json=[{"Spec": {"Name": "com.docker.license-4"}}])
            created.append(json.loads(request.content))
            return httpx.Response(201, json={"ID": "new"})

        with _client(handler) as client:
            placement = load_license(b"license", client, tmp_path)

        assert placement.location == "com.docker.license-5"
        assert created[0]["Labels"]["com.docker.ucp.collection"] == "swarm"

    def test_standalone_engine_writes_file(self, tmp_path):
        def handler(request):
            return httpx.Response(503, json={"message": "This node is not a swarm manager."})

        with _client(handler) as client:
            placement = load_license(b"license", client, tmp_path)

        assert placement.location == str(tmp_path / "docker.lic")
        assert (tmp_path / "docker.lic").read_bytes() == b"license"
