"""启动时写入的演示数据"""

import logging

from ..models.mapping import RequestMapping, RequestSpec, ResponseSpec
from ..models.workspace import Namespace
from . import MappingStore, NamespaceStore, UserStore

logger = logging.getLogger(__name__)


def seed_demo_data(
    mappings: MappingStore,
    namespaces: NamespaceStore,
    users: UserStore,
    default_namespace: str = "default",
) -> None:
    """写入默认工作区、admin 用户和两个示例端点（已存在则跳过）"""
    for name, display_name in ((default_namespace, default_namespace.title()), ("demo", "Demo")):
        if namespaces.get_by_name(name) is None:
            namespaces.save(Namespace(name=name, display_name=display_name, owner="admin", members=["admin"]))

    if users.get_by_user_id("admin") is None:
        admin = users.create_user("admin", email="admin@example.com", first_name="Admin")
        admin.namespaces = [default_namespace, "demo"]
        admin.default_namespace = default_namespace
        users.save(admin)

    if mappings.list_by_namespace("demo"):
        return

    mappings.save(
        RequestMapping(
            name="List Memos",
            priority=5,
            tags=["memo"],
            request=RequestSpec(method="GET", path="/api/memos"),
            response=ResponseSpec(
                status=200,
                headers={"Content-Type": "application/json"},
                body='[{"id": 1, "title": "First memo"}]',
            ),
        ),
        "demo",
    )
    mappings.save(
        RequestMapping(
            name="Create Memo",
            priority=5,
            tags=["memo"],
            request=RequestSpec(method="POST", path="/api/memos"),
            response=ResponseSpec(
                status=201,
                headers={"Content-Type": "application/json"},
                body='{"id": "{{randomValue type=\'UUID\'}}", '
                     '"title": "{{{jsonPath request.body \'$.title\'}}}"}',
                templating_enabled=True,
            ),
        ),
        "demo",
    )
    logger.info("演示数据已写入")
