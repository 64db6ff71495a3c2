"""Core workflow logic: configuration, errors, RBAC and the approval state machine."""
