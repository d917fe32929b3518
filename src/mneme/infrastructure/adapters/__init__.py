# Infrastructure Adapters
from .essay_grader import HttpEssayGrader
from .memory_store import InMemoryStudyRepository
from .yaml_store import YamlStudyRepository

__all__ = ["HttpEssayGrader", "InMemoryStudyRepository", "YamlStudyRepository"]
