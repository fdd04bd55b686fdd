"""任务类型识别测试"""

import pytest

from simulator.exceptions import OracleError
from simulator.models.ai import TaskType
from simulator.services.classifier import IntentClassifier, classify_by_keywords
from simulator.tests.conftest import FakeOracle


class TestClassifyByKeywords:
    """测试关键词兜底规则"""

    @pytest.mark.parametrize("prompt, expected", [
        ("Generate endpoints from this Swagger file", TaskType.GENERATE_FROM_OPENAPI),
        ("openapi: 3.0.0\npaths: {}", TaskType.GENERATE_FROM_OPENAPI),
        ("please generate from spec", TaskType.GENERATE_FROM_OPENAPI),
        ("Create a namespace called billing", TaskType.CREATE_NAMESPACE),
        ("create user john", TaskType.CREATE_USER),
        ("list everything", TaskType.CREATE_MAPPING),
    ])
    def test_rules(self, prompt, expected):
        """测试各条规则"""
        assert classify_by_keywords(prompt) == expected


class TestIntentClassifier:
    """测试模型分类与兜底"""

    def test_explicit_task_type_skips_oracle(self, composer):
        """测试请求已带任务类型时不调用模型"""
        oracle = FakeOracle()
        classifier = IntentClassifier(oracle, composer)
        assert classifier.classify("whatever", TaskType.DELETE_USER) == TaskType.DELETE_USER
        assert oracle.calls == []

    def test_oracle_reply_normalized(self, composer):
        """测试模型回复带 markdown 装饰"""
        oracle = FakeOracle(["**LIST_MAPPINGS**"])
        classifier = IntentClassifier(oracle, composer)
        assert classifier.classify("show me all endpoints") == TaskType.LIST_MAPPINGS
        assert oracle.calls[0]["user_content"] == "show me all endpoints"
        assert "task classification expert" in oracle.calls[0]["system_prompt"]

    def test_oracle_failure_uses_keywords(self, composer):
        """测试模型调用失败时使用关键词规则"""
        oracle = FakeOracle([OracleError("timeout")])
        classifier = IntentClassifier(oracle, composer)
        assert classifier.classify("create a new namespace") == TaskType.CREATE_NAMESPACE

    def test_unknown_reply_defaults_to_create(self, composer):
        """测试模型回复无法识别"""
        classifier = IntentClassifier(FakeOracle(["NOT_A_TASK"]), composer)
        assert classifier.classify("hmm") == TaskType.CREATE_MAPPING
