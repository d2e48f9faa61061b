from enum import Enum


CLEAR_ALL_CACHE_CONFIRMATION = "DELETE_ALL_CACHE"

class RoleEnum(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"

class OperationTypeEnum(str, Enum):
    TEST_GENERATION = "test_generation"
    CHAT = "chat"
    SUMMARY = "summary"
    FLASHCARDS = "flashcards"
    MINDMAP = "mindmap"
