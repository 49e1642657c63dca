"""
federation/pagination.py
"""
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response

from .constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


class FederationPagination(PageNumberPagination):
    page_size             = DEFAULT_PAGE_SIZE
    page_size_query_param = "limit"
    max_page_size         = MAX_PAGE_SIZE

    def get_paginated_response(self, data):
        return Response({
            "success": True,
            "message": "OK",
            "data": {
                "results": data,
                "pagination": {
                    "total":        self.page.paginator.count,
                    "page":         self.page.number,
                    "pages":        self.page.paginator.num_pages,
                    "limit":        self.get_page_size(self.request),
                },
            },
        })


def paginated(request, queryset, serializer_class, view=None):
    """Paginate a queryset (or list) inside a plain APIView."""
    paginator  = FederationPagination()
    page       = paginator.paginate_queryset(queryset, request, view=view)
    serializer = serializer_class(page, many=True, context={"request": request})
    return paginator.get_paginated_response(serializer.data)
