import json

import pytest

from isvcsync.core.errors import LookupFailure, StoreError
from isvcsync.core.lookups import (
    AUTH_ANONYMOUS,
    AUTH_USER_DEFINED,
    DEPLOYMENT_MODE_ANNOTATION,
    ENABLE_AUTH_ANNOTATION,
    KSERVE_CONFIGMAP_NAME,
    MODEL_MESH,
    RAW_DEPLOYMENT,
    SERVERLESS,
    UNKNOWN_MODE,
    AuthTypeDetector,
    DeploymentModeResolver,
    HostExtractor,
    RuntimeImageLookup,
    extract_image_name,
    operator_namespace_from_file,
)
from isvcsync.core.store import InMemoryStore

from conftest import make_configmap, make_isvc, make_runtime


@pytest.mark.parametrize(
    "image, expected",
    [
        ("quay.io/modh/vllm:rhoai-2.8", "vllm"),
        ("quay.io/modh/openvino_model_server@sha256:abc", "openvino_model_server"),
        ("registry.example.com/a/b/text-generation-inference:1.0", "text-generation-inference"),
        ("vllm", ""),
        ("quay.io/modh/vllm", ""),
        ("", ""),
    ],
)
def test_extract_image_name(image, expected):
    assert extract_image_name(image) == expected


def test_operator_namespace_from_file(tmp_path):
    p = tmp_path / "namespace"
    p.write_text("opendatahub\n", encoding="utf-8")
    assert operator_namespace_from_file(str(p)) == "opendatahub"
    assert operator_namespace_from_file(str(tmp_path / "missing")) == ""


class TestRuntimeImageLookup:
    def test_returns_first_container_image(self, store):
        store.seed(make_runtime("ovms-runtime", "ns1", "quay.io/modh/openvino_model_server:1"))
        assert RuntimeImageLookup(store)(make_isvc()) == "quay.io/modh/openvino_model_server:1"

    def test_no_runtime_named(self, store):
        assert RuntimeImageLookup(store)(make_isvc(runtime=None)) is None
        assert store.calls["get"] == 0

    def test_runtime_not_found(self, store):
        assert RuntimeImageLookup(store)(make_isvc()) is None

    def test_runtime_without_containers(self, store):
        rt = make_runtime("ovms-runtime", "ns1", "x")
        rt.content["spec"]["containers"] = []
        store.seed(rt)
        assert RuntimeImageLookup(store)(make_isvc()) is None

    def test_store_failure_is_a_lookup_failure(self):
        class _Broken(InMemoryStore):
            def get(self, kind, key):
                raise StoreError("boom", status=500)

        with pytest.raises(LookupFailure):
            RuntimeImageLookup(_Broken())(make_isvc())


def _kserve_config(mode: str):
    return make_configmap(KSERVE_CONFIGMAP_NAME, "opendatahub", {"deploy": json.dumps({"defaultDeploymentMode": mode})})


class TestDeploymentModeResolver:
    @pytest.mark.parametrize("mode", [SERVERLESS, RAW_DEPLOYMENT, MODEL_MESH])
    def test_annotation_wins(self, store, mode):
        resolver = DeploymentModeResolver(store, "opendatahub")
        assert resolver(make_isvc(annotations={DEPLOYMENT_MODE_ANNOTATION: mode})) == mode
        assert store.calls["get"] == 0

    def test_cluster_default_serverless(self, store):
        store.seed(_kserve_config("Serverless"))
        assert DeploymentModeResolver(store, "opendatahub")(make_isvc()) == SERVERLESS

    def test_anything_else_is_raw(self, store):
        store.seed(_kserve_config("Whatever"))
        assert DeploymentModeResolver(store, "opendatahub")(make_isvc()) == RAW_DEPLOYMENT

    @pytest.mark.parametrize("value", ["Bogus", "serverless", ""])
    def test_unrecognised_annotation_is_unknown_without_lookup(self, store, value):
        store.seed(_kserve_config("Serverless"))
        parent = make_isvc(annotations={DEPLOYMENT_MODE_ANNOTATION: value})
        # no operator namespace configured: a fallback read would fail
        assert DeploymentModeResolver(store, "")(parent) == UNKNOWN_MODE
        assert store.calls["get"] == 0

    def test_missing_operator_namespace(self, store):
        with pytest.raises(LookupFailure):
            DeploymentModeResolver(store, "")(make_isvc())

    def test_missing_configmap(self, store):
        with pytest.raises(LookupFailure):
            DeploymentModeResolver(store, "opendatahub")(make_isvc())

    def test_malformed_deploy_key(self, store):
        store.seed(make_configmap(KSERVE_CONFIGMAP_NAME, "opendatahub", {"deploy": "{not json"}))
        with pytest.raises(LookupFailure):
            DeploymentModeResolver(store, "opendatahub")(make_isvc())


@pytest.mark.parametrize(
    "annotations, expected",
    [
        ({ENABLE_AUTH_ANNOTATION: "true"}, AUTH_USER_DEFINED),
        ({ENABLE_AUTH_ANNOTATION: "True"}, AUTH_USER_DEFINED),
        ({ENABLE_AUTH_ANNOTATION: "false"}, AUTH_ANONYMOUS),
        ({}, AUTH_ANONYMOUS),
    ],
)
def test_auth_type_detector(annotations, expected):
    assert AuthTypeDetector()(make_isvc(annotations=annotations)) == expected


def test_host_extractor_collects_unique_hosts():
    parent = make_isvc(url="https://mnist-ns1.apps.example.com")
    hosts = HostExtractor()(parent)
    assert hosts == [
        "mnist-ns1.apps.example.com",
        "mnist-predictor.ns1.svc",
        "mnist-predictor.ns1.svc.cluster.local",
    ]


def test_host_extractor_without_url():
    hosts = HostExtractor()(make_isvc(url=None))
    assert hosts == ["mnist-predictor.ns1.svc", "mnist-predictor.ns1.svc.cluster.local"]
