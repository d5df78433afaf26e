from typing import Dict, Optional

import pytest

from isvcsync.core.resources import InferenceService, Resource
from isvcsync.core.store import InMemoryStore
from isvcsync.core.templates import TemplateLoader


def make_isvc(
    name: str = "mnist",
    namespace: str = "ns1",
    *,
    uid: str = "isvc-uid-1",
    runtime: Optional[str] = "ovms-runtime",
    model_format: Optional[str] = None,
    url: Optional[str] = "https://mnist-ns1.apps.example.com",
    annotations: Optional[Dict[str, str]] = None,
    deleting: bool = False,
) -> InferenceService:
    return InferenceService(
        name=name,
        namespace=namespace,
        uid=uid,
        runtime=runtime,
        model_format=model_format,
        url=url,
        annotations=dict(annotations or {}),
        deleting=deleting,
    )


def make_runtime(name: str, namespace: str, image: str) -> Resource:
    return Resource(
        api_version="serving.kserve.io/v1alpha1",
        kind="ServingRuntime",
        name=name,
        namespace=namespace,
        content={"spec": {"containers": [{"name": "kserve-container", "image": image}]}},
    )


def make_configmap(name: str, namespace: str, data: Dict[str, str], labels: Optional[Dict[str, str]] = None) -> Resource:
    return Resource(
        api_version="v1",
        kind="ConfigMap",
        name=name,
        namespace=namespace,
        labels=dict(labels or {}),
        content={"data": dict(data)},
    )


@pytest.fixture(scope="session")
def templates():
    return TemplateLoader().load()


@pytest.fixture
def store():
    return InMemoryStore()
