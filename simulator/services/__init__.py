from .ai_service import AIService
from .prompt_composer import PromptComposer, PromptBundle
from .classifier import IntentClassifier

__all__ = ["AIService", "PromptComposer", "PromptBundle", "IntentClassifier"]
