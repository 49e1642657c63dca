"""
permissions.py
─────────────────────────────────────────────────────────────────────
Role-based access (RBAC) for the API views
"""
from rest_framework.permissions import BasePermission, SAFE_METHODS


def is_federation_admin(user) -> bool:
    return bool(
        user and user.is_authenticated
        and (user.is_superuser or getattr(user, "user_type", None) == "admin")
    )


class UserTypePermission(BasePermission):
    """
    Passes when the user has one of the view's allowed_user_types.

    class MyView(APIView):
        permission_classes = [UserTypePermission]
        allowed_user_types = ["club", "partner"]
    """
    message = "You do not have access to this resource."

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        if is_federation_admin(user):
            return True

        allowed = getattr(view, "allowed_user_types", None) or []
        if not allowed:
            return True

        return user.user_type in allowed


class IsFederationAdmin(BasePermission):
    message = "Administrator access required."

    def has_permission(self, request, view):
        return is_federation_admin(request.user)


class IsAdminOrReadOnly(BasePermission):
    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return True
        return is_federation_admin(request.user)
