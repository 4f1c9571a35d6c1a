from .answer import AnswerRepository, InMemoryAnswerRepository, PostgresAnswerRepository

__all__ = ["AnswerRepository", "InMemoryAnswerRepository", "PostgresAnswerRepository"]
