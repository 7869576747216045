"""
Модуль поиска номеров (Search Engine).

Отвечает за поиск свободных номеров по датам, типу, вместимости,
цене и удобствам с заданной сортировкой.
"""

from . import application, domain
from .application import RoomSearchService
from .domain import RoomSearchFilter, SortField, SortOrder

__all__ = [
    "application",
    "domain",
    "RoomSearchFilter",
    "RoomSearchService",
    "SortField",
    "SortOrder",
]
