from rest_framework.permissions import BasePermission


def require_permission(perm):
    """
    Build a DRF permission class that checks a Django model permission.

    Usage:
        @permission_classes([IsAuthenticated, require_permission('alerts.add_alertmarker')])
    """
    class HasModelPermission(BasePermission):
        message = f'You do not have permission to perform this action ({perm}).'

        def has_permission(self, request, view):
            user = request.user
            return bool(user and user.is_authenticated and user.has_perm(perm))

    HasModelPermission.__name__ = f'HasPermission_{perm.replace(".", "_")}'
    return HasModelPermission


def require_method_permissions(perms_by_method):
    """
    Like require_permission, with a different permission per HTTP method.
    Methods missing from the mapping only need an authenticated user.
    """
    class HasMethodPermission(BasePermission):
        message = 'You do not have permission to perform this action.'

        def has_permission(self, request, view):
            user = request.user
            if not (user and user.is_authenticated):
                return False
            perm = perms_by_method.get(request.method)
            return perm is None or user.has_perm(perm)

    return HasMethodPermission
