# backend/wc_core/tests/helpers.py
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from rest_framework.test import APIClient


def scoped(tenant):
    return {
        "HTTP_X_TENANT_ID": str(tenant.id),
    }


def make_user(tenant, username: str, role: str = "ADMIN"):
    """
    User with one role group + active membership in `tenant`.
    Matches the membership graph used by scope enforcement:
      auth_user -> UserProfile -> TenantMembership -> Tenant
    """
    from wc_core.iam.models import TenantMembership, UserProfile

    User = get_user_model()
    user = User.objects.create_user(username=username, password="testpass", is_active=True)

    group, _ = Group.objects.get_or_create(name=role)
    user.groups.add(group)

    profile = UserProfile.objects.create(user=user, is_active=True)
    TenantMembership.objects.create(tenant=tenant, user_profile=profile, is_active=True)
    return user


def client_for(user):
    c = APIClient()
    c.force_authenticate(user=user)
    return c
