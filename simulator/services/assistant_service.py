import logging
from typing import Callable, Dict, List, Optional

from ..exceptions import (
    EntityNotFoundError,
    OracleError,
    ResponseParseError,
    TargetUnresolvedError,
    ValidationConflictError,
)
from ..handlers import TaskHandlerRegistry, build_default_registry
from ..handlers.base import list_all_response
from ..models.ai import AIRequest, AIResponse, TaskType
from ..models.mapping import RequestMapping
from ..models.payloads import (
    BulkUpdatePlan,
    MovePlan,
    NamespaceAssignment,
    NamespaceDraft,
    NamespaceTarget,
    NamespaceUpdate,
    UserDraft,
    UserStatusChange,
    UserTarget,
    UserUpdate,
)
from ..models.workspace import Namespace
from ..storage import MappingStore, NamespaceStore, UserStore
from ..storage.user_store import hash_password
from .ai_service import AIService
from .bulk_update import execute_plan
from .classifier import IntentClassifier
from .context_service import (
    build_context,
    build_deep_endpoint_context,
    build_detailed_context,
    build_follow_up_context,
    get_relevant_mappings,
)
from .prompt_composer import PromptBundle, PromptComposer
from .resolver import resolve_target
from .response_parser import apply_identity, parse_mapping, parse_payload

logger = logging.getLogger(__name__)

ADMIN_USER_ID = "admin"

Action = Callable[[AIRequest, List[RequestMapping]], AIResponse]


class AssistantService:
    """AI 助手主流程：识别任务 → 处理器 / 内置动作 → 统一响应"""

    def __init__(
        self,
        oracle: AIService,
        composer: PromptComposer,
        mappings: MappingStore,
        namespaces: NamespaceStore,
        users: UserStore,
        registry: Optional[TaskHandlerRegistry] = None,
        max_context_mappings: int = 20,
    ):
        self.oracle = oracle
        self.composer = composer
        self.mappings = mappings
        self.namespaces = namespaces
        self.users = users
        self.max_context_mappings = max_context_mappings
        self.classifier = IntentClassifier(oracle, composer)
        if registry is None:
            registry = build_default_registry(oracle, composer, mappings, namespaces)
        self.registry = registry

        # 没有处理器接管时使用的内置动作，GENERATE_FROM_OPENAPI 只由处理器负责
        self._actions: Dict[TaskType, Action] = {
            TaskType.CREATE_MAPPING: self.create_mapping,
            TaskType.MODIFY_MAPPING: self.modify_mapping,
            TaskType.DELETE_MAPPING: self.delete_mapping,
            TaskType.MOVE_MAPPING: self.move_mapping,
            TaskType.BULK_UPDATE_MAPPING: self.bulk_update_mappings,
            TaskType.LIST_MAPPINGS: self.list_mappings,
            TaskType.DEBUG_MAPPING: self._helper("Debug analysis complete"),
            TaskType.EXPLAIN_MAPPING: self._helper("Explanation generated"),
            TaskType.OPTIMIZE_MAPPING: self.optimize_mapping,
            TaskType.SUGGEST_RESPONSE: self.suggest_response,
            TaskType.ANALYZE_PAYLOAD: self._analysis("Deep payload analysis complete"),
            TaskType.ANALYZE_CURL: self._analysis("Deep curl analysis complete"),
            TaskType.CHECK_ENDPOINT_MATCH: self._analysis("Deep endpoint validation complete"),
            TaskType.CREATE_NAMESPACE: self.create_namespace,
            TaskType.MODIFY_NAMESPACE: self.modify_namespace,
            TaskType.DELETE_NAMESPACE: self.delete_namespace,
            TaskType.LIST_NAMESPACES: self.list_namespaces,
            TaskType.CREATE_USER: self.create_user,
            TaskType.MODIFY_USER: self.modify_user,
            TaskType.DELETE_USER: self.delete_user,
            TaskType.LIST_USERS: self.list_users,
            TaskType.ENABLE_DISABLE_USER: self.enable_disable_user,
            TaskType.ASSIGN_NAMESPACE: self.assign_namespace,
        }

    def process(self, request: AIRequest) -> AIResponse:
        """处理一次请求，任何异常都转换为失败响应"""
        try:
            logger.info(f"=== AI 请求: namespace={request.namespace}, task={request.task_type} ===")
            logger.info(f"用户输入: {request.user_prompt}")
            if request.conversation_history:
                logger.info(f"对话历史 {len(request.conversation_history)} 条")

            mappings = self.mappings.list_by_namespace(request.namespace)
            logger.info(f"工作区 '{request.namespace}' 共 {len(mappings)} 个端点")

            task_type = self.classifier.classify(request.user_prompt, request.task_type)
            request = request.model_copy(update={"task_type": task_type})

            handler = self.registry.find_handler(request, mappings)
            if handler is not None:
                return handler.handle(request, mappings)

            action = self._actions.get(task_type)
            if action is None:
                return AIResponse.error(f"Unsupported task type: {task_type.value}")
            logger.info(f"使用内置动作处理 {task_type.value}")
            return action(request, mappings)
        except Exception as e:
            return self._error_response(e)

    def _error_response(self, exc: Exception) -> AIResponse:
        if isinstance(exc, TargetUnresolvedError):
            logger.warning(f"无法确定目标: {exc}")
            return AIResponse.error(
                str(exc),
                f"❓ {exc} Please specify the endpoint more clearly (by name, path, or ID).\n\n"
                f"Available endpoints:\n\n{exc.context}",
            )
        if isinstance(exc, ValidationConflictError):
            logger.warning(f"操作冲突: {exc}")
            return AIResponse.error(str(exc), f"❌ {exc}. {exc.remediation}".strip())
        if isinstance(exc, EntityNotFoundError):
            logger.warning(str(exc))
            return AIResponse.error(str(exc), f"❌ {exc}")
        if isinstance(exc, ResponseParseError):
            logger.error(f"模型输出解析失败: {exc}")
            return AIResponse.error(
                "Could not understand the AI response",
                f"The AI returned data in an unexpected format: {exc}. Please try rephrasing your request.",
            )
        if isinstance(exc, OracleError):
            logger.error(f"模型调用失败: {exc}")
            return AIResponse.error("AI service unavailable", str(exc))
        logger.exception(f"处理请求失败: {exc}")
        return AIResponse.error(f"Failed to process request: {exc}")

    def _ask(self, bundle: PromptBundle, request: Optional[AIRequest] = None) -> str:
        history = request.conversation_history if request is not None else None
        return self.oracle.complete(
            bundle.instructions,
            bundle.user_content,
            history=history,
            temperature=bundle.temperature,
            max_tokens=bundle.max_tokens,
        )

    def _compose(self, request: AIRequest, context: str = "", **facts) -> PromptBundle:
        return self.composer.compose(
            request.task_type,
            context=context,
            namespace=request.namespace,
            user_prompt=request.user_prompt,
            **facts,
        )

    # ---------- Mapping CRUD ----------

    def create_mapping(self, request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
        relevant = get_relevant_mappings(mappings, request.user_prompt, self.max_context_mappings)
        reply = self._ask(self._compose(request, build_context(relevant)), request)

        generated = parse_mapping(reply)
        # 新端点的身份由存储分配
        generated = generated.model_copy(update={"id": None, "namespace": request.namespace})
        saved = self.mappings.save(generated, request.namespace)
        return AIResponse.ok(
            "Mapping created successfully",
            f"✅ Created mapping: **{saved.name}** (`{saved.request.method} {saved.request.path}`)",
            action="create",
            mapping_id=saved.id,
            generated_mapping=saved,
        )

    def resolve_mapping(self, request: AIRequest, mappings: List[RequestMapping], verb: str) -> RequestMapping:
        """先按路径 / 名称 / ID 匹配，匹配不到再请模型识别；都失败则要求用户澄清"""
        target = resolve_target(request.user_prompt, request.conversation_history, mappings)
        if target is not None:
            return target

        context = build_detailed_context(mappings)
        if mappings:
            bundle = self.composer.auxiliary(
                "identify_mapping",
                request.user_prompt,
                namespace=request.namespace,
                context=context,
                action=verb,
            )
            reply = self._ask(bundle).strip()
            if "UNKNOWN" not in reply.upper():
                for mapping in mappings:
                    if (mapping.id and mapping.id in reply) or mapping.name.lower() in reply.lower():
                        logger.info(f"模型识别到端点: {mapping.name} ({mapping.id})")
                        return mapping

        raise TargetUnresolvedError(f"I couldn't identify which endpoint you want to {verb}.", context=context)

    def modify_mapping(self, request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
        original = self.resolve_mapping(request, mappings, "modify")
        reply = self._ask(self._compose(request, mapping=original), request)

        updated = apply_identity(parse_mapping(reply), original)
        saved = self.mappings.save(updated)
        return AIResponse.ok(
            "Mapping updated successfully",
            f"✅ Updated mapping: **{saved.name}**\n\nChanges applied based on your request.",
            action="modify_complete",
            mapping_id=saved.id,
            generated_mapping=saved,
        )

    def delete_mapping(self, request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
        target = self.resolve_mapping(request, mappings, "delete")
        self.mappings.delete(target.id)
        return AIResponse.ok(
            "Mapping deleted",
            f"🗑️ Deleted mapping: **{target.name}** (`{target.request.method} {target.request.path}`)",
            action="delete",
            mapping_id=target.id,
        )

    def move_mapping(self, request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
        namespaces = self.namespaces.list_all()
        available = ", ".join(ns.name for ns in namespaces) or "default"
        bundle = self._compose(request, build_detailed_context(mappings), namespaces=available)
        plan = parse_payload(self._ask(bundle, request), MovePlan)

        target_ns = self.namespaces.get_by_name(plan.target_namespace)
        if target_ns is None:
            raise ValidationConflictError(
                f"Target workspace '{plan.target_namespace}' does not exist",
                remediation=f"Available: {available}",
            )
        if self.mappings.get(plan.mapping_id) is None:
            raise EntityNotFoundError(f"Mapping not found: {plan.mapping_id}")

        moved = self.mappings.move(plan.mapping_id, target_ns.name)
        explanation = plan.explanation or f"Moving {moved.name} to {target_ns.name} workspace."
        return AIResponse.ok(
            "Endpoint moved successfully",
            f"{explanation}\n\n✅ **Move completed!**",
            action="move",
            mapping_id=moved.id,
        )

    def bulk_update_mappings(self, request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
        bundle = self._compose(request, build_detailed_context(mappings), total=len(mappings))
        plan = parse_payload(self._ask(bundle, request), BulkUpdatePlan)
        logger.info(f"批量更新计划: {plan.update_type} / {plan.target_endpoints}")

        updated = execute_plan(plan, mappings, self.mappings, request.namespace)
        return AIResponse.ok(
            f"Updated {len(updated)} endpoints",
            f"{plan.summary}\n\n✅ **Bulk update completed!** Updated {len(updated)} endpoint(s).",
            action="bulk_update",
            mappings=updated,
        )

    def list_mappings(self, request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
        return list_all_response(mappings)

    # ---------- Mapping helpers ----------

    def _helper(self, message: str) -> Action:
        def run(request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
            reply = self._ask(self._compose(request, build_detailed_context(mappings)), request)
            return AIResponse.ok(message, reply)
        return run

    def optimize_mapping(self, request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
        reply = self._ask(self._compose(request, build_detailed_context(mappings)), request)
        suggestions = [line.strip() for line in reply.splitlines() if line.strip()]
        return AIResponse.ok("Optimization suggestions generated", reply, suggestions=suggestions)

    def suggest_response(self, request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
        reply = self._ask(self._compose(request), request)
        return AIResponse.ok("Response suggestion generated", reply)

    def _analysis(self, message: str) -> Action:
        """请求体 / curl / 端点匹配分析：识别到目标端点时带入其完整配置"""
        def run(request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
            target = resolve_target(request.user_prompt, request.conversation_history, mappings)
            if target is None:
                logger.warning("没有识别到具体端点，使用工作区全部端点作为上下文")
                context = build_detailed_context(mappings)
            elif request.conversation_history:
                context = build_follow_up_context(target, mappings)
            else:
                context = build_deep_endpoint_context(target)

            reply = self._ask(self._compose(request, context), request)
            return AIResponse.ok(message, reply, mapping_id=target.id if target else None)
        return run

    # ---------- Namespace CRUD ----------

    def _namespace_lines(self) -> str:
        return "\n".join(f"- {ns.label} ({ns.name})" for ns in self.namespaces.list_all())

    def _require_namespace(self, name: str) -> Namespace:
        namespace = self.namespaces.get_by_name(name)
        if namespace is None:
            raise EntityNotFoundError(f"Namespace not found: {name}")
        return namespace

    def create_namespace(self, request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
        draft = parse_payload(self._ask(self._compose(request), request), NamespaceDraft)
        if self.namespaces.get_by_name(draft.name) is not None:
            raise ValidationConflictError(
                f"A namespace with name '{draft.name}' already exists",
                remediation="Please choose a different name.",
            )

        saved = self.namespaces.save(Namespace(
            name=draft.name,
            display_name=draft.display_name,
            description=draft.description,
            owner=ADMIN_USER_ID,
            members=[ADMIN_USER_ID],
        ))
        return AIResponse.ok(
            "Namespace created successfully",
            f"✅ Created namespace: **{saved.label}** ({saved.name})\n\n{saved.description or ''}".rstrip(),
            action="create_namespace",
            mapping_id=saved.name,
        )

    def modify_namespace(self, request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
        bundle = self._compose(request, namespaces=self._namespace_lines())
        update = parse_payload(self._ask(bundle, request), NamespaceUpdate)
        namespace = self._require_namespace(update.namespace_name)

        changes = update.model_dump(include=update.model_fields_set - {"namespace_name"})
        namespace = namespace.model_copy(update=changes)
        self.namespaces.save(namespace)
        return AIResponse.ok(
            "Namespace updated",
            f"✅ Updated namespace **{namespace.label}**",
            action="modify_namespace",
            mapping_id=namespace.name,
        )

    def delete_namespace(self, request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
        bundle = self._compose(request, namespaces=self._namespace_lines())
        target = parse_payload(self._ask(bundle, request), NamespaceTarget)
        namespace = self._require_namespace(target.namespace_name)

        remaining = self.mappings.list_by_namespace(namespace.name)
        if remaining:
            raise ValidationConflictError(
                f"Cannot delete namespace {namespace.label} because it contains {len(remaining)} API mappings",
                remediation="Please delete all mappings first.",
            )

        self.namespaces.delete(namespace.name)
        for user in self.users.list_all():
            if namespace.name in user.namespaces:
                user.namespaces.remove(namespace.name)
                self.users.save(user)
        return AIResponse.ok(
            "Namespace deleted",
            f"🗑️ Deleted namespace: **{namespace.label}** ({namespace.name})",
            action="delete_namespace",
            mapping_id=namespace.name,
        )

    def list_namespaces(self, request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
        namespaces = self.namespaces.list_all()
        if not namespaces:
            return AIResponse.ok("No namespaces found", "📋 No namespaces configured in the system.")

        lines = ["📁 **Namespaces:**", ""]
        for ns in namespaces:
            lines.append(f"**{ns.label}** (`{ns.name}`)")
            if ns.description:
                lines.append(f"   └─ {ns.description}")
            lines.append(f"   └─ Members: {len(ns.members)} | {'✅ Active' if ns.active else '❌ Inactive'}")
            lines.append("")
        return AIResponse.ok(
            f"Listed {len(namespaces)} namespaces",
            "\n".join(lines),
            action="list_namespaces",
        )

    # ---------- User CRUD ----------

    def _user_lines(self) -> str:
        return "\n".join(
            f"- {u.full_name} (@{u.user_id}) - {'Active' if u.active else 'Disabled'}"
            for u in self.users.list_all()
        )

    def _require_user(self, user_id: str):
        user = self.users.get_by_user_id(user_id)
        if user is None:
            raise EntityNotFoundError(f"User not found: {user_id}")
        return user

    def create_user(self, request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
        draft = parse_payload(self._ask(self._compose(request), request), UserDraft)
        user = self.users.create_user(
            draft.user_id,
            email=draft.email,
            first_name=draft.first_name,
            last_name=draft.last_name,
            password=draft.password,
        )
        return AIResponse.ok(
            "User created successfully",
            f"✅ Created user: **{user.full_name}** (@{user.user_id})\n"
            f"📧 {user.email or 'No email'}\n🔑 Password: {draft.password}",
            action="create_user",
            mapping_id=user.user_id,
        )

    def modify_user(self, request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
        bundle = self._compose(request, users=self._user_lines())
        update = parse_payload(self._ask(bundle, request), UserUpdate)
        user = self._require_user(update.user_id)

        changes = update.model_dump(include=update.model_fields_set - {"user_id", "password"})
        if update.password:
            changes["password_hash"] = hash_password(update.password)
        user = user.model_copy(update=changes)
        self.users.save(user)
        return AIResponse.ok(
            "User updated",
            f"✅ Updated user **{user.full_name}** (@{user.user_id})",
            action="modify_user",
            mapping_id=user.user_id,
        )

    def delete_user(self, request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
        bundle = self._compose(request, users=self._user_lines())
        target = parse_payload(self._ask(bundle, request), UserTarget)
        user = self._require_user(target.user_id)
        if user.user_id == ADMIN_USER_ID:
            raise ValidationConflictError(
                "Cannot delete the admin user account",
                remediation="Disable or modify the admin account instead.",
            )

        self.users.delete(user.user_id)
        for namespace in self.namespaces.list_all():
            if user.user_id in namespace.members:
                namespace.members.remove(user.user_id)
                self.namespaces.save(namespace)
        return AIResponse.ok(
            "User deleted",
            f"🗑️ Deleted user: **{user.full_name}** (@{user.user_id})",
            action="delete_user",
            mapping_id=user.user_id,
        )

    def list_users(self, request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
        users = self.users.list_all()
        if not users:
            return AIResponse.ok("No users found", "👥 No users in the system.")

        lines = ["👥 **Users:**", ""]
        for user in users:
            lines.append(f"**{user.full_name}** (@{user.user_id})")
            if user.email:
                lines.append(f"   └─ 📧 {user.email}")
            lines.append(
                f"   └─ Namespaces: {len(user.namespaces)} | {'✅ Active' if user.active else '❌ Disabled'}"
            )
            lines.append("")
        return AIResponse.ok(f"Listed {len(users)} users", "\n".join(lines), action="list_users")

    def enable_disable_user(self, request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
        bundle = self._compose(request, users=self._user_lines())
        change = parse_payload(self._ask(bundle, request), UserStatusChange)
        user = self._require_user(change.user_id)

        enable = change.action == "enable"
        user.active = enable
        self.users.save(user)
        verb = "enabled" if enable else "disabled"
        return AIResponse.ok(
            f"User {verb}",
            f"{'✅' if enable else '🚫'} User **{user.full_name}** (@{user.user_id}) has been {verb}",
            action="user_status",
            mapping_id=user.user_id,
        )

    def assign_namespace(self, request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
        bundle = self._compose(request, namespaces=self._namespace_lines(), users=self._user_lines())
        assignment = parse_payload(self._ask(bundle, request), NamespaceAssignment)
        user = self._require_user(assignment.user_id)
        namespace = self._require_namespace(assignment.namespace_name)

        if user.user_id not in namespace.members:
            namespace.members.append(user.user_id)
            self.namespaces.save(namespace)
        if namespace.name not in user.namespaces:
            user.namespaces.append(namespace.name)
            self.users.save(user)
        return AIResponse.ok(
            "Namespace assigned",
            f"✅ Assigned **{user.full_name}** (@{user.user_id}) to namespace **{namespace.label}**",
            action="assign_namespace",
            mapping_id=user.user_id,
        )
