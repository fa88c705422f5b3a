"""
Pagination for billing admin lists.
"""

from rest_framework.pagination import CursorPagination


class AdminCursorPagination(CursorPagination):
    """
    Newest first, stable under concurrent inserts.

    Default: 25 per page, maximum 100.
    """

    page_size = 25
    max_page_size = 100
    page_size_query_param = "page_size"
    ordering = ("-created_at", "-id")
