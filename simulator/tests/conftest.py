"""测试公共 fixtures：脚本化的假模型与内存存储"""

from typing import Callable, List, Union

import pytest

from simulator.config import OracleConfig
from simulator.exceptions import OracleError
from simulator.handlers import TaskHandlerRegistry
from simulator.models.mapping import RequestMapping, RequestSpec, ResponseSpec
from simulator.models.workspace import Namespace
from simulator.services.assistant_service import AssistantService
from simulator.services.prompt_composer import PromptComposer
from simulator.storage import MappingStore, NamespaceStore, UserStore

Reply = Union[str, Exception]


class FakeOracle:
    """按顺序返回预设回复；回复为异常时抛出，可传入函数按提示词决定回复"""

    def __init__(self, replies: Union[List[Reply], Callable[[str, str], Reply], None] = None):
        self.replies = replies if replies is not None else []
        self.calls = []

    def complete(self, system_prompt, user_content, history=None, temperature=None, max_tokens=None):
        self.calls.append({
            "system_prompt": system_prompt,
            "user_content": user_content,
            "history": list(history or []),
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        if callable(self.replies):
            reply = self.replies(system_prompt, user_content)
        elif self.replies:
            reply = self.replies.pop(0)
        else:
            raise OracleError("no scripted reply left")
        if isinstance(reply, Exception):
            raise reply
        return reply


def make_mapping(name, method="GET", path="/api/items", mapping_id=None, namespace="default",
                 headers=None, status=200, body=None, **fields):
    return RequestMapping(
        id=mapping_id,
        name=name,
        namespace=namespace,
        request=RequestSpec(method=method, path=path, headers=headers or {}),
        response=ResponseSpec(status=status, body=body),
        **fields,
    )


@pytest.fixture
def composer():
    return PromptComposer(OracleConfig())


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def mapping_store():
    return MappingStore()


@pytest.fixture
def namespace_store():
    store = NamespaceStore()
    store.save(Namespace(name="default", display_name="Default", owner="admin", members=["admin"]))
    store.save(Namespace(name="demo", display_name="Demo", owner="admin", members=["admin"]))
    return store


@pytest.fixture
def user_store():
    store = UserStore()
    admin = store.create_user("admin", email="admin@example.com", first_name="Admin")
    admin.namespaces = ["default", "demo"]
    store.save(admin)
    return store


@pytest.fixture
def service(oracle, composer, mapping_store, namespace_store, user_store):
    """不注册任何处理器，直接走内置动作"""
    return AssistantService(
        oracle=oracle,
        composer=composer,
        mappings=mapping_store,
        namespaces=namespace_store,
        users=user_store,
        registry=TaskHandlerRegistry(),
    )


@pytest.fixture
def full_service(oracle, composer, mapping_store, namespace_store, user_store):
    """注册默认处理器"""
    return AssistantService(
        oracle=oracle,
        composer=composer,
        mappings=mapping_store,
        namespaces=namespace_store,
        users=user_store,
    )
