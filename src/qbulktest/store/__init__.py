"""Question and test-case stores."""
from .base import QuestionStore
from .yaml_bank import YamlQuestionBank, load_bank

__all__ = [
    "QuestionStore",
    "YamlQuestionBank",
    "load_bank",
]
