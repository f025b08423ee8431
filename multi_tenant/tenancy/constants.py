"""Tenancy constants."""

# Execution option / Session.info key disabling tenant scoping
SKIP_TENANT_SCOPE = "skip_tenant_scope"

# Value in a global allow rule matching every HTTP method
ANY_METHOD = "any"
