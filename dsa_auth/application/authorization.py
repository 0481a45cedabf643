from ..domain.entities import Identity, Role


def authorize(identity: Identity, required_role: Role) -> bool:
    # admin > moderator > student
    return Role(identity.role).satisfies(Role(required_role))
