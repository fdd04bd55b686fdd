"""助手主流程测试：内置动作、存储修改与错误转换"""

import json

import pytest

from simulator.exceptions import OracleError
from simulator.models.ai import AIRequest, ChatMessage, MessageRole, TaskType
from simulator.models.workspace import Namespace
from simulator.storage.user_store import hash_password
from simulator.tests.conftest import make_mapping


def ask(service, prompt, task_type=None, namespace="default", history=None):
    return service.process(AIRequest(
        user_prompt=prompt,
        task_type=task_type,
        namespace=namespace,
        conversation_history=history or [],
    ))


def mapping_reply(name="Generated", method="GET", path="/api/users", status=200, mapping_id=None):
    data = {
        "name": name,
        "request": {"method": method, "path": path},
        "response": {"status": status, "body": "{}"},
    }
    if mapping_id:
        data["id"] = mapping_id
    return "```json\n" + json.dumps(data) + "\n```"


class TestDispatch:
    """测试任务分发"""

    def test_classifies_when_task_type_missing(self, service, oracle, mapping_store):
        """测试未指定任务类型时先分类"""
        mapping_store.save(make_mapping("Users", path="/api/users"), "default")
        oracle.replies = ["**LIST_MAPPINGS**"]

        response = ask(service, "what endpoints exist?")
        assert response.success
        assert response.action == "list"
        assert len(response.mappings) == 1

    def test_single_line_fenced_classification(self, service, oracle, mapping_store):
        """测试单行代码块包裹的分类结果仍按原类型执行"""
        mapping_store.save(make_mapping("Orders", path="/api/orders", mapping_id="o1"), "default")
        mapping_store.save(make_mapping("Users", path="/api/users", mapping_id="u1"), "default")
        oracle.replies = ["```DELETE_MAPPING```"]

        response = ask(service, "delete the orders endpoint")
        assert response.action == "delete"
        assert mapping_store.get("o1") is None
        assert len(mapping_store.list_all()) == 1

    def test_default_registry_generates_from_openapi(self, full_service, oracle, mapping_store):
        """测试 OpenAPI 生成走完整流程并保存端点"""
        spec = (
            "openapi: 3.0.0\n"
            "paths:\n"
            "  /pets:\n"
            "    get:\n"
            "      summary: List pets\n"
            "      responses:\n"
            "        '200':\n"
            "          description: OK\n"
        )
        oracle.replies = [json.dumps({"name": "List pets - Success 200", "responseBody": []})]

        response = ask(full_service, spec, TaskType.GENERATE_FROM_OPENAPI, "demo")
        assert response.success
        assert response.action == "generate_from_openapi"
        assert [m.name for m in mapping_store.list_by_namespace("demo")] == ["List pets - Success 200"]

    def test_unsupported_task_type(self, service):
        """测试没有处理器也没有内置动作"""
        response = ask(service, "openapi: 3.0.0", TaskType.GENERATE_FROM_OPENAPI)
        assert not response.success
        assert response.message == "Unsupported task type: GENERATE_FROM_OPENAPI"

    def test_default_registry_handles_openapi(self, full_service, oracle):
        """测试默认注册的处理器接管 OpenAPI 生成"""
        response = ask(full_service, "generate endpoints please", TaskType.GENERATE_FROM_OPENAPI)
        assert response.message == "No OpenAPI spec provided"
        assert oracle.calls == []

    def test_oracle_failure_becomes_error_response(self, service, oracle):
        """测试模型调用失败转换为失败响应"""
        oracle.replies = [OracleError("connection reset")]
        response = ask(service, "create a users endpoint", TaskType.CREATE_MAPPING)
        assert not response.success
        assert response.message == "AI service unavailable"

    def test_parse_failure_becomes_error_response(self, service, oracle, mapping_store):
        """测试模型输出无法解析转换为失败响应"""
        oracle.replies = ["Sure, I created it for you!"]
        response = ask(service, "create a users endpoint", TaskType.CREATE_MAPPING)
        assert not response.success
        assert response.message == "Could not understand the AI response"
        assert mapping_store.list_all() == []

    def test_unexpected_error_becomes_error_response(self, service, oracle):
        """测试未预期异常同样转换为失败响应"""
        oracle.replies = [RuntimeError("boom")]
        response = ask(service, "suggest a response", TaskType.SUGGEST_RESPONSE)
        assert not response.success
        assert response.message == "Failed to process request: boom"


class TestMappingActions:
    """测试端点增删改"""

    def test_create_saves_in_request_namespace(self, service, oracle, mapping_store):
        """测试创建的端点保存到请求的工作区并分配新 ID"""
        history = [ChatMessage(role=MessageRole.USER, content="hi")]
        oracle.replies = [mapping_reply("User List", mapping_id="forged")]

        response = ask(service, "create a users endpoint", TaskType.CREATE_MAPPING, "demo", history)
        assert response.success
        assert response.action == "create"
        assert response.mapping_id != "forged"

        saved = mapping_store.get(response.mapping_id)
        assert saved.namespace == "demo"
        assert saved.created_at is not None
        assert oracle.calls[0]["history"] == history

    def test_create_includes_relevant_context(self, service, oracle, mapping_store):
        """测试创建时带入已有端点摘要"""
        mapping_store.save(make_mapping("Orders", path="/api/orders"), "default")
        oracle.replies = [mapping_reply()]
        ask(service, "create orders export endpoint", TaskType.CREATE_MAPPING)
        assert "- GET /api/orders (Priority: 5, Status: 200)" in oracle.calls[0]["system_prompt"]

    def test_modify_keeps_identity(self, service, oracle, mapping_store):
        """测试修改后 id 与工作区不变，内容取模型结果"""
        mapping_store.save(make_mapping("User List", path="/api/users", mapping_id="abc123"), "demo")
        mapping_store.save(make_mapping("Orders", path="/api/orders", mapping_id="o1"), "demo")
        oracle.replies = [mapping_reply("User List", status=404, mapping_id="zzz")]

        response = ask(service, "make /api/users return 404", TaskType.MODIFY_MAPPING, "demo")
        assert response.success
        assert response.action == "modify_complete"
        assert response.mapping_id == "abc123"
        assert '"id": "abc123"' in oracle.calls[0]["system_prompt"]

        stored = mapping_store.get("abc123")
        assert stored.response.status == 404
        assert stored.namespace == "demo"
        assert mapping_store.get("zzz") is None

    def test_modify_target_identified_by_oracle(self, service, oracle, mapping_store):
        """测试本地无法识别时由模型识别目标"""
        mapping_store.save(make_mapping("User List", path="/api/users", mapping_id="abc123"), "default")
        mapping_store.save(make_mapping("Orders", path="/api/orders", mapping_id="o1"), "default")
        oracle.replies = ["o1", mapping_reply("Orders", path="/api/orders", status=500)]

        response = ask(service, "make the purchase one fail", TaskType.MODIFY_MAPPING)
        assert response.mapping_id == "o1"
        assert mapping_store.get("o1").response.status == 500

    def test_modify_unresolved_lists_endpoints(self, service, oracle, mapping_store):
        """测试无法确定目标时要求澄清并列出端点"""
        mapping_store.save(make_mapping("User List", path="/api/users", mapping_id="abc123"), "default")
        mapping_store.save(make_mapping("Orders", path="/api/orders", mapping_id="o1"), "default")
        oracle.replies = ["UNKNOWN"]

        response = ask(service, "change it", TaskType.MODIFY_MAPPING)
        assert not response.success
        assert "Available endpoints" in response.explanation
        assert "📍 **Orders** (ID: o1)" in response.explanation

    def test_delete_single_mapping(self, service, mapping_store):
        """测试工作区只有一个端点时直接删除"""
        mapping_store.save(make_mapping("Orders", path="/api/orders", mapping_id="o1"), "default")
        response = ask(service, "delete that endpoint", TaskType.DELETE_MAPPING)
        assert response.success
        assert response.action == "delete"
        assert mapping_store.get("o1") is None

    def test_move_to_existing_namespace(self, service, oracle, mapping_store):
        """测试移动到已有工作区（名称忽略大小写）"""
        mapping_store.save(make_mapping("Memo", path="/api/memos", mapping_id="m1"), "default")
        oracle.replies = [json.dumps({"mappingId": "m1", "targetNamespace": "DEMO", "explanation": "Moving Memo."})]

        response = ask(service, "move memo to demo", TaskType.MOVE_MAPPING)
        assert response.success
        assert "✅ **Move completed!**" in response.explanation
        assert mapping_store.get("m1").namespace == "demo"

    def test_move_to_missing_namespace(self, service, oracle, mapping_store):
        """测试目标工作区不存在"""
        mapping_store.save(make_mapping("Memo", path="/api/memos", mapping_id="m1"), "default")
        oracle.replies = [json.dumps({"mappingId": "m1", "targetNamespace": "nowhere"})]

        response = ask(service, "move memo to nowhere", TaskType.MOVE_MAPPING)
        assert not response.success
        assert "Available: default, demo" in response.explanation
        assert mapping_store.get("m1").namespace == "default"


class TestBulkUpdate:
    """测试批量更新"""

    @pytest.fixture(autouse=True)
    def seed(self, mapping_store):
        for index in range(3):
            mapping_store.save(make_mapping(f"E{index}", path=f"/api/e{index}", mapping_id=f"e{index}"), "default")
        mapping_store.save(make_mapping("Other", path="/api/other", mapping_id="x1"), "demo")

    def test_all_endpoints(self, service, oracle, mapping_store):
        """测试 all 更新工作区内全部端点"""
        oracle.replies = [json.dumps({
            "updateType": "add_header",
            "targetEndpoints": "all",
            "updateDetails": {"headerName": "X-Request-Id", "headerValue": "required"},
            "summary": "Require X-Request-Id on every endpoint",
        })]

        response = ask(service, "require X-Request-Id on all endpoints", TaskType.BULK_UPDATE_MAPPING)
        assert response.message == "Updated 3 endpoints"
        assert "Updated 3 endpoint(s)." in response.explanation
        for mapping in mapping_store.list_by_namespace("default"):
            assert "X-Request-Id" in mapping.request.header_patterns
        assert mapping_store.get("x1").request.header_patterns == {}

    def test_subset_with_missing_id(self, service, oracle, mapping_store):
        """测试 subset 中不存在的 ID 被跳过"""
        oracle.replies = [json.dumps({
            "updateType": "disable",
            "targetEndpoints": "subset",
            "endpointIds": ["e0", "nope"],
            "summary": "Disable e0",
        })]

        response = ask(service, "disable e0", TaskType.BULK_UPDATE_MAPPING)
        assert response.message == "Updated 1 endpoints"
        assert mapping_store.get("e0").enabled is False
        assert mapping_store.get("e1").enabled is True

    def test_unknown_update_type(self, service, oracle):
        """测试未知更新类型不修改任何端点"""
        oracle.replies = [json.dumps({"updateType": "paint", "targetEndpoints": "all", "summary": "?"})]
        response = ask(service, "paint all endpoints", TaskType.BULK_UPDATE_MAPPING)
        assert response.success
        assert response.message == "Updated 0 endpoints"


class TestHelpers:
    """测试分析与建议类任务"""

    def test_optimize_returns_suggestions(self, service, oracle):
        """测试优化建议按行拆分"""
        oracle.replies = ["- lower priority\n\n- add delay"]
        response = ask(service, "optimize my endpoints", TaskType.OPTIMIZE_MAPPING)
        assert response.suggestions == ["- lower priority", "- add delay"]

    def test_analyze_payload_uses_deep_context(self, service, oracle, mapping_store):
        """测试识别到端点时带入完整配置"""
        mapping_store.save(make_mapping("Create Memo", method="POST", path="/api/memos", mapping_id="m1"), "default")
        mapping_store.save(make_mapping("Orders", path="/api/orders", mapping_id="o1"), "default")
        oracle.replies = ["The payload matches."]

        response = ask(service, 'will {"title": "x"} match /api/memos?', TaskType.ANALYZE_PAYLOAD)
        assert response.success
        assert response.mapping_id == "m1"
        assert "=== COMPLETE ENDPOINT CONFIGURATION ===" in oracle.calls[0]["system_prompt"]


class TestNamespaceActions:
    """测试工作区管理"""

    def test_create_namespace(self, service, oracle, namespace_store):
        """测试创建工作区"""
        oracle.replies = [json.dumps({"name": "billing", "displayName": "Billing"})]
        response = ask(service, "create a billing namespace", TaskType.CREATE_NAMESPACE)
        assert response.success
        assert namespace_store.get_by_name("billing").owner == "admin"

    def test_create_duplicate_namespace(self, service, oracle):
        """测试工作区重名"""
        oracle.replies = [json.dumps({"name": "Demo"})]
        response = ask(service, "create demo namespace", TaskType.CREATE_NAMESPACE)
        assert not response.success
        assert "Please choose a different name." in response.explanation

    def test_modify_namespace_only_given_fields(self, service, oracle, namespace_store):
        """测试只修改模型给出的字段"""
        oracle.replies = [json.dumps({"namespaceName": "demo", "description": "Demo APIs"})]
        ask(service, "describe demo as Demo APIs", TaskType.MODIFY_NAMESPACE)
        namespace = namespace_store.get_by_name("demo")
        assert namespace.description == "Demo APIs"
        assert namespace.display_name == "Demo"

    def test_delete_namespace_with_mappings_blocked(self, service, oracle, mapping_store, namespace_store):
        """测试工作区下仍有端点时不能删除"""
        mapping_store.save(make_mapping("Memo", mapping_id="m1"), "demo")
        oracle.replies = [json.dumps({"namespaceName": "demo"})]

        response = ask(service, "delete the demo namespace", TaskType.DELETE_NAMESPACE)
        assert not response.success
        assert "Please delete all mappings first." in response.explanation
        assert namespace_store.get_by_name("demo") is not None

    def test_delete_empty_namespace(self, service, oracle, namespace_store, user_store):
        """测试删除空工作区并从用户中移除"""
        oracle.replies = [json.dumps({"namespaceName": "demo"})]
        response = ask(service, "delete the demo namespace", TaskType.DELETE_NAMESPACE)
        assert response.success
        assert namespace_store.get_by_name("demo") is None
        assert user_store.get_by_user_id("admin").namespaces == ["default"]

    def test_list_namespaces(self, service):
        """测试列出工作区"""
        response = ask(service, "list namespaces", TaskType.LIST_NAMESPACES)
        assert response.message == "Listed 2 namespaces"


class TestUserActions:
    """测试用户管理"""

    def test_create_user(self, service, oracle, user_store):
        """测试创建用户，未给密码时使用默认密码"""
        oracle.replies = [json.dumps({"userId": "john", "firstName": "John", "email": "john@example.com"})]
        response = ask(service, "create user john", TaskType.CREATE_USER)
        assert response.success
        assert user_store.get_by_user_id("john").password_hash == hash_password("password123")

    def test_create_duplicate_user(self, service, oracle):
        """测试用户重复"""
        oracle.replies = [json.dumps({"userId": "admin"})]
        response = ask(service, "create user admin", TaskType.CREATE_USER)
        assert not response.success
        assert "already exists" in response.message

    def test_admin_cannot_be_deleted(self, service, oracle, user_store):
        """测试 admin 账号不能删除"""
        oracle.replies = [json.dumps({"userId": "admin"})]
        response = ask(service, "delete admin", TaskType.DELETE_USER)
        assert not response.success
        assert user_store.get_by_user_id("admin") is not None

    def test_delete_user_removes_membership(self, service, oracle, user_store, namespace_store):
        """测试删除用户并移出工作区成员"""
        user_store.create_user("john")
        namespace = namespace_store.get_by_name("demo")
        namespace.members.append("john")
        namespace_store.save(namespace)
        oracle.replies = [json.dumps({"userId": "john"})]

        response = ask(service, "delete john", TaskType.DELETE_USER)
        assert response.success
        assert user_store.get_by_user_id("john") is None
        assert namespace_store.get_by_name("demo").members == ["admin"]

    def test_modify_user_hashes_password(self, service, oracle, user_store):
        """测试修改密码时保存哈希"""
        user_store.create_user("john")
        oracle.replies = [json.dumps({"userId": "john", "lastName": "Doe", "password": "s3cret"})]
        ask(service, "set john's last name to Doe and password to s3cret", TaskType.MODIFY_USER)

        john = user_store.get_by_user_id("john")
        assert john.last_name == "Doe"
        assert john.password_hash == hash_password("s3cret")

    def test_disable_user(self, service, oracle, user_store):
        """测试禁用用户"""
        user_store.create_user("john")
        oracle.replies = [json.dumps({"userId": "john", "action": "disable"})]
        response = ask(service, "disable john", TaskType.ENABLE_DISABLE_USER)
        assert response.message == "User disabled"
        assert user_store.get_by_user_id("john").active is False

    def test_assign_namespace(self, service, oracle, user_store, namespace_store):
        """测试分配工作区同时更新用户与工作区"""
        user_store.create_user("john")
        namespace_store.save(Namespace(name="billing"))
        oracle.replies = [json.dumps({"userId": "john", "namespaceName": "billing"})]

        response = ask(service, "give john access to billing", TaskType.ASSIGN_NAMESPACE)
        assert response.success
        assert user_store.get_by_user_id("john").namespaces == ["billing"]
        assert namespace_store.get_by_name("billing").members == ["john"]

    def test_missing_user(self, service, oracle):
        """测试用户不存在"""
        oracle.replies = [json.dumps({"userId": "ghost", "action": "enable"})]
        response = ask(service, "enable ghost", TaskType.ENABLE_DISABLE_USER)
        assert not response.success
        assert response.message == "User not found: ghost"
