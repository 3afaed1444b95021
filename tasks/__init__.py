"""
Tasks domain package.

Public API:
- Domain models: Task, TaskKind, TaskStatus
- Category helpers: normalize_categories, parse_commission_type
"""
from .models import Task, TaskKind, TaskStatus, normalize_categories, parse_commission_type

__all__ = ["Task",
           "TaskKind",
             "TaskStatus",
               "normalize_categories",
               "parse_commission_type",
               ]
